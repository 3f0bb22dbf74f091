"""
Configuration for the brewing engine.

Defaults can be overridden by BREWING_* environment variables and then by
command-line flags (see src.main.create_config_from_args).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import logging
import os

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "brewing" / "data"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BrewingConfig:
    """Configuration for a brewing session."""

    # Reference data and storage
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    db_path: Optional[Path] = None  # None keeps everything in memory

    # Rules
    brewing_dc: int = 15
    die_size: int = 20
    max_herbs_per_brew: int = 6
    default_batch_size: int = 1

    # Runtime options
    seed: Optional[int] = None
    verbose: bool = False

    def __post_init__(self):
        """Ensure paths are Path objects and rule values are usable."""
        if isinstance(self.data_dir, str):
            self.data_dir = Path(self.data_dir)
        if isinstance(self.db_path, str):
            self.db_path = Path(self.db_path)
        if self.die_size < 1:
            raise ValueError(f"die_size must be positive, got {self.die_size}")
        if self.max_herbs_per_brew < 1:
            raise ValueError(f"max_herbs_per_brew must be positive, got {self.max_herbs_per_brew}")
        if self.default_batch_size < 1:
            raise ValueError(f"default_batch_size must be positive, got {self.default_batch_size}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BrewingConfig":
        """
        Build a config from BREWING_* environment variables.

        Recognized: BREWING_DATA_DIR, BREWING_DB_PATH, BREWING_DC,
        BREWING_DIE_SIZE, BREWING_MAX_HERBS, BREWING_BATCH_SIZE,
        BREWING_SEED, BREWING_VERBOSE. Unset variables keep the defaults.
        """
        env = os.environ if environ is None else environ
        kwargs = {}

        if env.get("BREWING_DATA_DIR"):
            kwargs["data_dir"] = Path(env["BREWING_DATA_DIR"])
        if env.get("BREWING_DB_PATH"):
            kwargs["db_path"] = Path(env["BREWING_DB_PATH"])

        int_vars = {
            "BREWING_DC": "brewing_dc",
            "BREWING_DIE_SIZE": "die_size",
            "BREWING_MAX_HERBS": "max_herbs_per_brew",
            "BREWING_BATCH_SIZE": "default_batch_size",
            "BREWING_SEED": "seed",
        }
        for var, attr in int_vars.items():
            if env.get(var):
                try:
                    kwargs[attr] = int(env[var])
                except ValueError:
                    raise ValueError(f"{var} must be an integer, got {env[var]!r}")

        if env.get("BREWING_VERBOSE"):
            kwargs["verbose"] = _env_bool(env["BREWING_VERBOSE"])

        config = cls(**kwargs)
        logger.debug(f"Config from environment: {config}")
        return config
