"""Configuration for pipeline defaults.

Settings are loaded from environment variables (a ``.env`` file is honoured
via python-dotenv) and validated with pydantic.

Environment Variables:
    PIPELINE_RETRY_COUNT: Default attempts for retry steps (default: 3)
    PIPELINE_RETRY_DELAY: Default delay in seconds between attempts (default: none)
    PIPELINE_CANCEL_ON_TIMEOUT: Cancel the losing task of a timeout step (default: false)
    PIPELINE_LOG_LEVEL: Level applied by configure_logging() (default: WARNING)
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "async_pipeline"


class PipelineConfig(BaseModel):
    """Defaults applied when a builder call omits the matching argument."""

    retry_count: int = Field(default=3, ge=1)
    retry_delay: Optional[float] = Field(default=None, ge=0)
    cancel_on_timeout: bool = False
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build configuration from PIPELINE_* environment variables."""
        retry_delay = os.getenv("PIPELINE_RETRY_DELAY")
        return cls(
            retry_count=int(os.getenv("PIPELINE_RETRY_COUNT", "3")),
            retry_delay=float(retry_delay) if retry_delay else None,
            cancel_on_timeout=os.getenv("PIPELINE_CANCEL_ON_TIMEOUT", "false").lower() == "true",
            log_level=os.getenv("PIPELINE_LOG_LEVEL", "WARNING"),
        )


_config: Optional[PipelineConfig] = None


def get_config() -> PipelineConfig:
    """
    Get the active pipeline configuration.

    Loaded from the environment on first use and cached afterwards.
    """
    global _config

    if _config is None:
        _config = PipelineConfig.from_env()
        logger.debug(f"Loaded pipeline config: {_config!r}")
    return _config


def set_config(config: Optional[PipelineConfig]) -> None:
    """Replace the active configuration. ``None`` re-reads the environment on next use."""
    global _config
    _config = config


def configure_logging(level: Optional[str] = None) -> None:
    """
    Set the level of the package logger.

    Args:
        level: Logging level name; defaults to the configured log_level
    """
    level_name = (level or get_config().log_level).upper()
    logging.getLogger(PACKAGE_LOGGER).setLevel(level_name)
