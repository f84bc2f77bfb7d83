"""Settings loaded from the environment (and .env)."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

from .models import BinaryComparisonPolicy, ReconcileOptions

logger = logging.getLogger(__name__)

ENV_PREFIX = "ZIPBRIDGE_"
DEFAULT_TOKEN_FILE = Path("~/.config/zipbridge/token.json")


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Runtime settings."""

    api_url: str = "https://api.github.com"
    timeout: float = 30.0
    max_retries: int = 1
    token_file: Path = DEFAULT_TOKEN_FILE
    select_unchanged: bool = True
    binary_policy: BinaryComparisonPolicy = BinaryComparisonPolicy.SKIP
    pause_every: int = 10
    pause_seconds: float = 0.1
    max_archive_mb: int = 100

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from ZIPBRIDGE_* variables, loading .env first."""
        if load_env_file:
            load_dotenv()
        values: dict[str, object] = {}
        for name, field in cls.model_fields.items():
            raw = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            values[name] = _env_bool(raw) if field.annotation is bool else raw
        settings = cls(**values)
        logger.debug("Settings: %s", settings)
        return settings

    @property
    def token_path(self) -> Path:
        return self.token_file.expanduser()

    @property
    def max_archive_size(self) -> int:
        return self.max_archive_mb * 1024 * 1024

    def reconcile_options(self) -> ReconcileOptions:
        return ReconcileOptions(
            default_select_unchanged=self.select_unchanged,
            binary_comparison_policy=self.binary_policy,
            pause_every=self.pause_every,
            pause_seconds=self.pause_seconds,
        )
