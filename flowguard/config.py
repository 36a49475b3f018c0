# flowguard/config.py
import os
from dataclasses import dataclass, replace
from typing import Optional

from flowguard.utils.logger import level_from_name

DEFAULT_MAX_OPERATIONS = 5
DEFAULT_PROFILE = "runtime"
DEFAULT_CACHE_TTL = 300.0


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    max_operations: int = DEFAULT_MAX_OPERATIONS
    default_profile: str = DEFAULT_PROFILE
    cache_ttl: float = DEFAULT_CACHE_TTL
    log_level: int = level_from_name("INFO")
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """
        Read FLOWGUARD_MAX_OPERATIONS, FLOWGUARD_DEFAULT_PROFILE,
        FLOWGUARD_CACHE_TTL, FLOWGUARD_LOG_FILE and LOG_LEVEL. Non-None keyword
        overrides win.
        """
        base = cls(
            max_operations=max(1, _env_int("FLOWGUARD_MAX_OPERATIONS", DEFAULT_MAX_OPERATIONS)),
            default_profile=os.getenv("FLOWGUARD_DEFAULT_PROFILE", DEFAULT_PROFILE) or DEFAULT_PROFILE,
            cache_ttl=_env_float("FLOWGUARD_CACHE_TTL", DEFAULT_CACHE_TTL),
            log_level=level_from_name(os.getenv("LOG_LEVEL")),
            log_file=os.getenv("FLOWGUARD_LOG_FILE") or None,
        )
        return base.with_overrides(**overrides)

    def with_overrides(self, **overrides) -> "Settings":
        clean = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **clean) if clean else self
