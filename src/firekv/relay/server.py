from __future__ import annotations

import contextlib
import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from firekv.exceptions import FireKVError, RemoteHTTPError
from firekv.store.client import FireStore

logger = logging.getLogger(__name__)


def get_store(request: Request) -> FireStore:
    return request.app.state.store


StoreDep = Annotated[FireStore, Depends(get_store)]


async def handle_relay_request(
    store: FireStore,
    key: Optional[str],
    *,
    value: Optional[str] = None,
    delete: Optional[str] = None,
    cleanup: Optional[str] = None,
) -> dict[str, Any]:
    """Translate one relay GET into store calls.

    The relay stores each value as ``{"value": <raw query string>}``; the
    client is responsible for JSON-encoding it.
    """
    if cleanup:
        deleted = await store.cleanup()
        return {"keys": await store.list_keys(), "deletedKeys": deleted}

    if not key:
        return {"keys": await store.list_keys()}

    if delete:
        await store.delete(key)
        return {"keys": await store.list_keys(), "deletedKeys": [key]}

    if value is not None:
        await store.set_value(key, {"value": value})
        return {"key": key, "value": value}

    current = await store.get_value(key)
    return {"key": key, "value": (current or {}).get("value")}


def relay_router(prefix: str = "") -> APIRouter:
    r = APIRouter(prefix=prefix, tags=["relay"])

    @r.get("/")
    async def relay_root(store: StoreDep, cleanup: Optional[str] = None):
        return await handle_relay_request(store, None, cleanup=cleanup)

    @r.get("/{key}")
    async def relay_key(
        key: str,
        store: StoreDep,
        value: Optional[str] = None,
        delete: Optional[str] = None,
        cleanup: Optional[str] = None,
    ):
        return await handle_relay_request(store, key, value=value, delete=delete, cleanup=cleanup)

    return r


async def _firekv_error_handler(request: Request, exc: FireKVError) -> JSONResponse:
    status = 502 if isinstance(exc, RemoteHTTPError) else 500
    logger.error(f"{type(exc).__name__} on {request.url.path} ({status}): {exc}")
    return JSONResponse(status_code=status, content={"error": type(exc).__name__, "detail": str(exc)})


def create_relay_app(store: FireStore, *, title: str = "firekv relay", close_store: bool = False) -> FastAPI:
    """Build an ASGI app that relays GET requests to ``store``.

    With ``close_store`` the app closes the store on shutdown; otherwise its
    owner does.
    """

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if close_store:
            await store.aclose()

    app = FastAPI(title=title, lifespan=lifespan)
    app.state.store = store
    app.add_exception_handler(FireKVError, _firekv_error_handler)
    app.include_router(relay_router())
    logger.info(f"Relay initialized for collection {store.root_path}")
    return app


__all__ = ["create_relay_app", "relay_router", "handle_relay_request", "get_store"]
