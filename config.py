import logging
import os
import re
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:3002",
]

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


class ConfigurationError(RuntimeError):
    pass


class Config(BaseModel):
    port: int = 8000
    jwt_secret: Optional[str] = None
    jwt_access_expiry: str = "15m"
    jwt_refresh_expiry: str = "7d"
    frontend_url: Optional[str] = None
    rate_limit_window_ms: int = 900000
    rate_limit_max_requests: int = 100
    max_file_size: int = 5242880
    environment: str = "production"
    upload_dir: str = "uploads"
    trusted_proxies: List[str] = ["127.0.0.1"]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def bypass_rate_limits(self) -> bool:
        return self.environment in ("development", "test")

    @property
    def allowed_origins(self) -> List[str]:
        origins = list(DEFAULT_ORIGINS)
        if self.frontend_url:
            origins.insert(0, self.frontend_url)
        return origins

    def require_jwt_secret(self) -> str:
        if not self.jwt_secret:
            raise ConfigurationError("JWT_SECRET is not defined in environment variables")
        return self.jwt_secret


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return [part.strip() for part in raw.split(",") if part.strip()]


@lru_cache
def get_config() -> Config:
    return Config(
        port=_int_env("PORT", 8000),
        jwt_secret=os.getenv("JWT_SECRET") or None,
        jwt_access_expiry=os.getenv("JWT_ACCESS_EXPIRY", "15m"),
        jwt_refresh_expiry=os.getenv("JWT_REFRESH_EXPIRY", "7d"),
        frontend_url=os.getenv("FRONTEND_URL") or None,
        rate_limit_window_ms=_int_env("RATE_LIMIT_WINDOW_MS", 900000),
        rate_limit_max_requests=_int_env("RATE_LIMIT_MAX_REQUESTS", 100),
        max_file_size=_int_env("MAX_FILE_SIZE", 5242880),
        environment=os.getenv("ENVIRONMENT") or os.getenv("NODE_ENV") or "production",
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        trusted_proxies=_list_env("TRUSTED_PROXIES", ["127.0.0.1"]),
    )


def parse_duration(value: str) -> int:
    """Convert "15m", "7d", "3600" style lifetimes to seconds."""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _DURATION_UNITS[unit]


def configure_logging(config: Optional[Config] = None) -> None:
    config = config or get_config()
    level = logging.DEBUG if config.is_development else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
