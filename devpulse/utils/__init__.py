"""Environment readers used by the config classes."""
from os import getenv


def env_bool(key: str, default: bool = False) -> bool:
    val = getenv(key)
    if val is None:
        return default
    return val.lower() in {"1", "true", "t", "yes", "y"}


def env_int(key: str, default: int) -> int:
    val = getenv(key)
    return int(val) if val not in (None, "") else default


def env_float(key: str, default: float) -> float:
    val = getenv(key)
    return float(val) if val not in (None, "") else default
