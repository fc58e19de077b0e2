from .core.env import IS_DEV, IS_LOCAL, IS_PROD, IS_TEST, Env, get_env
from .core.logging import JsonFormatter, setup_logging

__all__ = [
    "Env",
    "IS_DEV",
    "IS_LOCAL",
    "IS_PROD",
    "IS_TEST",
    "JsonFormatter",
    "get_env",
    "setup_logging",
]
