from __future__ import annotations

import json
from typing import Any


class FireKVError(Exception):
    """Base class for every error raised by firekv."""


class AuthenticationError(FireKVError):
    """The service-account assertion could not be built or exchanged for a token."""


class RemoteHTTPError(FireKVError):
    """A remote call answered with a non-2xx status."""

    def __init__(self, action: str, status_code: int, body: Any = None):
        self.action = action
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to {action}: {status_code} - {_render(body)}")


class CodecError(FireKVError, TypeError):
    """A native value has no typed-field representation."""


def _render(body: Any) -> str:
    if body is None:
        return ""
    if isinstance(body, str):
        return body

    try:
        return json.dumps(body, separators=(",", ":"))
    except (TypeError, ValueError):
        return repr(body)


__all__ = ["FireKVError", "AuthenticationError", "RemoteHTTPError", "CodecError"]
