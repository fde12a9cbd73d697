"""Environment-driven harness settings."""

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from sourcekit.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30000

# Settings fields that may be overridden from the environment
ENV_VARS = {
    "phase_timeout_ms": "SOURCEKIT_PHASE_TIMEOUT_MS",
    "fetch_timeout_ms": "SOURCEKIT_FETCH_TIMEOUT_MS",
}


class HarnessSettings(BaseModel):
    """Limits applied to a single harness run."""

    phase_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    fetch_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    max_items: int = Field(default=500, gt=0)
    max_messages: int = Field(default=5, gt=0)
    app_version: str = "99.0.0"

    @property
    def phase_timeout(self) -> float:
        """Phase timeout in seconds."""
        return self.phase_timeout_ms / 1000

    @classmethod
    def from_env(cls) -> "HarnessSettings":
        """Build settings from the environment, loading ``.env`` first.

        A variable that does not validate is logged and its default kept.
        """
        load_dotenv()
        values: dict[str, str] = {}
        for field_name, env_var in ENV_VARS.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                cls.model_validate({field_name: raw})
            except ValidationError as e:
                logger.error(
                    "Ignoring invalid setting from environment",
                    extra={
                        "env_var": env_var,
                        "raw_value": raw,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                continue
            values[field_name] = raw
        return cls.model_validate(values)
