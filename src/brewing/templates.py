"""
Effect description templates.

Recipe descriptions may embed three kinds of placeholder:

- {n}, {n*K}, {n+K}: the owning effect's potency, optionally scaled by or
  offset by an integer literal K
- {variable}: a free-text choice made by the player
- {variable:opt1|opt2|...}: a choice from a closed set of options

A template is parsed once into literal text and typed variables; filling
it only walks the parsed segments.

Examples:
    "Deals {n}d6 fire damage"
    "Resistance to {damage_type:cold|fire|lightning} for {n*10} minutes"
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional, Sequence, Union
import re

from src.data_models import PairedEffect


_SPAN_PATTERN = re.compile(r"\{([^}]+)\}")
_POTENCY_PATTERN = re.compile(r"^n(?:([*+])(\d+))?$")


# =============================================================================
# TEMPLATE VARIABLES
# =============================================================================


@dataclass(frozen=True)
class PotencyVar:
    """
    Potency placeholder: {n}, {n*K} or {n+K}.

    A placeholder that looks like potency but has no integer operand
    (e.g. {n*x}) has operator set and operand None; it is never a choice
    and is left in the text unchanged.
    """

    raw: str
    operator: Optional[str] = None  # "*" or "+"
    operand: Optional[int] = None

    def evaluate(self, potency: int) -> Optional[int]:
        if self.operator is None:
            return potency
        if self.operand is None:
            return None
        if self.operator == "*":
            return potency * self.operand
        return potency + self.operand


@dataclass(frozen=True)
class EnumChoiceVar:
    """Choice from a closed option set: {variable:opt1|opt2}."""

    variable: str
    options: tuple[str, ...]
    raw: str = ""

    def accepts(self, value: str) -> bool:
        return value in self.options


@dataclass(frozen=True)
class FreeTextVar:
    """Free-text choice: {variable}."""

    variable: str
    raw: str = ""

    @property
    def options(self) -> None:
        return None

    def accepts(self, value: str) -> bool:
        return bool(value.strip())


ChoiceVar = Union[EnumChoiceVar, FreeTextVar]
TemplateVariable = Union[PotencyVar, EnumChoiceVar, FreeTextVar]


def _is_potency_span(content: str) -> bool:
    return content == "n" or content.startswith("n*") or content.startswith("n+")


def _parse_span(content: str) -> TemplateVariable:
    raw = "{" + content + "}"
    if _is_potency_span(content):
        match = _POTENCY_PATTERN.match(content)
        if match is None:
            return PotencyVar(raw=raw, operator=content[1])
        operator, operand = match.groups()
        return PotencyVar(
            raw=raw,
            operator=operator,
            operand=int(operand) if operand is not None else None,
        )

    if ":" in content:
        variable, options = content.split(":", 1)
        return EnumChoiceVar(variable=variable, options=tuple(options.split("|")), raw=raw)
    return FreeTextVar(variable=content, raw=raw)


# =============================================================================
# PARSED TEMPLATES
# =============================================================================


Segment = Union[str, PotencyVar, EnumChoiceVar, FreeTextVar]


@dataclass(frozen=True)
class ParsedTemplate:
    """A template split into literal text and typed variables."""

    source: str
    segments: tuple[Segment, ...]

    @property
    def variables(self) -> list[TemplateVariable]:
        return [s for s in self.segments if not isinstance(s, str)]

    @property
    def choices(self) -> list[ChoiceVar]:
        return [s for s in self.segments if isinstance(s, (EnumChoiceVar, FreeTextVar))]

    def render(self, potency: int, choices: Mapping[str, str]) -> str:
        """
        Substitute potency and choice values.

        Choice placeholders with no value are left as written.
        """
        parts: list[str] = []
        for segment in self.segments:
            if isinstance(segment, str):
                parts.append(segment)
            elif isinstance(segment, PotencyVar):
                value = segment.evaluate(potency)
                parts.append(segment.raw if value is None else str(value))
            elif segment.variable in choices:
                parts.append(choices[segment.variable])
            else:
                parts.append(segment.raw)
        return "".join(parts)


@lru_cache(maxsize=512)
def parse_template(template: str) -> ParsedTemplate:
    """Parse a description template into segments."""
    segments: list[Segment] = []
    position = 0
    for match in _SPAN_PATTERN.finditer(template):
        if match.start() > position:
            segments.append(template[position:match.start()])
        segments.append(_parse_span(match.group(1)))
        position = match.end()
    if position < len(template):
        segments.append(template[position:])
    return ParsedTemplate(source=template, segments=tuple(segments))


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================


def extract_choices(template: Optional[str]) -> list[ChoiceVar]:
    """
    List the choices a template declares, in order of appearance.

    Potency placeholders are never choices. A variable declared twice in
    one template is listed twice; deduplication happens across effects in
    collect_required_choices.
    """
    if not template:
        return []
    return parse_template(template).choices


def collect_required_choices(effects: Sequence[PairedEffect]) -> list[ChoiceVar]:
    """
    Gather the choices every effect's template needs.

    Deduplicated by variable name; the first declaration wins, so the
    option set of the earliest effect is the one offered.
    """
    required: list[ChoiceVar] = []
    seen: set[str] = set()
    for effect in effects:
        for choice in extract_choices(effect.recipe.description):
            if choice.variable not in seen:
                seen.add(choice.variable)
                required.append(choice)
    return required


def missing_choices(required: Sequence[ChoiceVar], choices: Mapping[str, str]) -> list[str]:
    """Names of required choices that have no non-empty value."""
    return [c.variable for c in required if not (choices.get(c.variable) or "").strip()]


def invalid_choices(required: Sequence[ChoiceVar], choices: Mapping[str, str]) -> list[str]:
    """Names of enumerated choices whose value is not one of the declared options."""
    return [
        c.variable
        for c in required
        if isinstance(c, EnumChoiceVar)
        and c.variable in choices
        and not c.accepts(choices[c.variable])
    ]


def fill_template(template: str, potency: int, choices: Mapping[str, str]) -> str:
    """
    Fill a template with potency and choice values.

    Args:
        template: Description template
        potency: Potency of the owning effect
        choices: Resolved choice values by variable name

    Returns:
        The filled string. Choice placeholders without a value remain.
    """
    return parse_template(template).render(potency, choices)


def compute_brewed_description(
    effects: Sequence[PairedEffect], choices: Mapping[str, str]
) -> str:
    """
    Build the crafted item's description from its effects.

    Filled templates are joined by a single space, in effect order.
    Effects without a template fall back to the recipe name, with a
    potency marker when the potency is above 1.
    """
    descriptions: list[str] = []
    for effect in effects:
        if effect.recipe.description:
            descriptions.append(fill_template(effect.recipe.description, effect.potency, choices))
        else:
            marker = f" (×{effect.potency})" if effect.potency > 1 else ""
            descriptions.append(f"{effect.recipe.name}{marker}")
    return " ".join(descriptions)


def expand_effect_names(effects: Sequence[PairedEffect]) -> list[str]:
    """Effect names repeated once per unit of potency."""
    names: list[str] = []
    for effect in effects:
        names.extend([effect.recipe.name] * effect.potency)
    return names
