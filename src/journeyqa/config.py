"""Engine settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import structlog
from dotenv import load_dotenv

from journeyqa.models import DEFAULT_STEP_TIMEOUT_MS

ENV_PREFIX = "JOURNEYQA_"


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from e


@dataclass
class EngineSettings:
    """Defaults shared by the resolver, executor and recorder."""

    default_timeout_ms: int = DEFAULT_STEP_TIMEOUT_MS
    poll_interval_ms: int = 100
    max_duration_ms: int | None = None  # journey budget when RunOptions leaves it unset
    journeys_dir: Path = Path("journeys")
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        self.journeys_dir = Path(self.journeys_dir)
        if self.default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")

    @classmethod
    def from_env(cls, dotenv: bool = True) -> EngineSettings:
        """Build settings from JOURNEYQA_* variables (and a .env file if present)."""
        if dotenv:
            load_dotenv()
        return cls(
            default_timeout_ms=_env_int("DEFAULT_TIMEOUT_MS", DEFAULT_STEP_TIMEOUT_MS),
            poll_interval_ms=_env_int("POLL_INTERVAL_MS", 100),
            max_duration_ms=_env_int("MAX_DURATION_MS", None),
            journeys_dir=Path(os.environ.get(ENV_PREFIX + "JOURNEYS_DIR", "journeys")),
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
        )

    def setup_logging(self, json_output: bool = False) -> None:
        """Configure structlog at this settings' log level."""
        configure_logging(self.log_level, json_output=json_output)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog on top of stdlib logging."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
