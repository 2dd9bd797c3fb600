"""
Runtime settings for the geolock service and CLI.

Values come from ``GEOLOCK_*`` environment variables, with a ``.env`` file
loaded first when present:

    GEOLOCK_HOST                      (default 127.0.0.1)
    GEOLOCK_PORT                      (default 3001)
    GEOLOCK_MAX_ATTESTATION_AGE_MS    (default 300000)
    GEOLOCK_MAX_SPEED_MPS             (default 200)
    GEOLOCK_REQUIRE_PRESENCE          (default false)
    GEOLOCK_MIN_PRESENCE_MS           (default 30000)
    GEOLOCK_COORDINATE_DECIMALS       (default 6)
    GEOLOCK_TRUST_ON_FIRST_USE        (default false)
    GEOLOCK_LOG_LEVEL                 (default INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from geolock.kdf import RoundingPolicy
from geolock.verification import (
    DEFAULT_MAX_AGE_MS,
    DEFAULT_MAX_SPEED_MPS,
    DEFAULT_MIN_PRESENCE_MS,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Service configuration."""
    host: str = "127.0.0.1"
    port: int = 3001
    max_attestation_age_ms: int = DEFAULT_MAX_AGE_MS
    max_speed_mps: float = DEFAULT_MAX_SPEED_MPS
    require_continuous_presence: bool = False
    min_presence_ms: int = DEFAULT_MIN_PRESENCE_MS
    coordinate_decimals: int = 6
    trust_on_first_use: bool = False
    log_level: str = "INFO"

    @property
    def rounding(self) -> RoundingPolicy:
        return RoundingPolicy(self.coordinate_decimals)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
    ) -> "Settings":
        """
        Load settings from the environment.

        Args:
            environ: Mapping to read instead of os.environ
            dotenv: Load a .env file into os.environ first

        Raises:
            ValueError: If a variable cannot be parsed
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ

        def get(name: str, default):
            return environ.get(f"GEOLOCK_{name}", default)

        def flag(name: str, default: bool) -> bool:
            value = get(name, None)
            if value is None:
                return default
            return value.strip().lower() in _TRUE

        return cls(
            host=get("HOST", cls.host),
            port=int(get("PORT", cls.port)),
            max_attestation_age_ms=int(get("MAX_ATTESTATION_AGE_MS", cls.max_attestation_age_ms)),
            max_speed_mps=float(get("MAX_SPEED_MPS", cls.max_speed_mps)),
            require_continuous_presence=flag("REQUIRE_PRESENCE", cls.require_continuous_presence),
            min_presence_ms=int(get("MIN_PRESENCE_MS", cls.min_presence_ms)),
            coordinate_decimals=int(get("COORDINATE_DECIMALS", cls.coordinate_decimals)),
            trust_on_first_use=flag("TRUST_ON_FIRST_USE", cls.trust_on_first_use),
            log_level=get("LOG_LEVEL", cls.log_level).upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the CLI and server."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
