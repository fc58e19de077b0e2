from __future__ import annotations

import os
import warnings
from enum import StrEnum
from functools import cache


class Env(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    TEST = "test"
    PROD = "prod"


ALIASES: dict[str, Env] = {
    "development": Env.DEV,
    "testing": Env.TEST,
    "production": Env.PROD,
}


def _normalize(raw: str | None) -> Env | None:
    if not raw:
        return None
    val = raw.strip().lower()
    if val in {e.value for e in Env}:
        return Env(val)
    return ALIASES.get(val)


@cache
def get_env() -> Env:
    """Deployment environment from APP_ENV; unset or unknown means LOCAL."""
    raw = os.getenv("APP_ENV")
    env = _normalize(raw)
    if env is None:
        if raw:
            warnings.warn(f"Unrecognized APP_ENV '{raw}', using 'local'.", RuntimeWarning, stacklevel=2)
        env = Env.LOCAL
    return env


# Read once at import; logging defaults hang off these.
IS_LOCAL = get_env() is Env.LOCAL
IS_DEV = get_env() is Env.DEV
IS_TEST = get_env() is Env.TEST
IS_PROD = get_env() is Env.PROD
