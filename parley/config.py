"""Runtime settings read from the environment (and an optional .env file).

    PARLEY_LULL_CONTINUE_CHANCE   chance a lull is continued (default 0.2)
    PARLEY_MAX_STEPS              step cap for a CLI run (default 100)
    PARLEY_SEED                   integer seed for reproducible runs
    PARLEY_LOG_LEVEL              logging level name (default WARNING)
    PARLEY_DATA_DIR               where transcripts are saved (default ./data)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator


class Settings(BaseModel):
    lull_continue_chance: float = Field(default=0.2, ge=0.0, le=1.0)
    max_steps: int = Field(default=100, gt=0)
    seed: int | None = None
    log_level: str = "WARNING"
    data_dir: Path = Path("data")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return value


def load_settings(env_file: Path | str | None = None) -> Settings:
    """Build Settings from PARLEY_* variables.

    Values already in the environment win over the .env file. Without an
    explicit env_file, the nearest .env above the working directory is used.
    """
    if env_file is None:
        env_file = find_dotenv(usecwd=True) or None
    if env_file is not None:
        load_dotenv(env_file)

    values: dict[str, str] = {}
    for field, var in (
        ("lull_continue_chance", "PARLEY_LULL_CONTINUE_CHANCE"),
        ("max_steps", "PARLEY_MAX_STEPS"),
        ("seed", "PARLEY_SEED"),
        ("log_level", "PARLEY_LOG_LEVEL"),
        ("data_dir", "PARLEY_DATA_DIR"),
    ):
        raw = os.getenv(var)
        if raw is not None and raw != "":
            values[field] = raw
    return Settings.model_validate(values)
