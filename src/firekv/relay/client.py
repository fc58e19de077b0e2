from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from firekv.exceptions import RemoteHTTPError

from .journal import FailureJournal
from .settings import RelaySettings

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RelayClient:
    """Key-value facade over a firekv relay server.

    The relay speaks plain GET requests (see ``firekv.relay.server``), so this
    client needs no credentials of its own.

    ``delete_key`` is fire-and-forget: it schedules the request on the running
    loop with a short timeout. If that attempt fails, a note is written to the
    failure journal, a warning is logged and the request is sent again without
    the short timeout. ``check_beacon_failures`` surfaces and clears the note.
    """

    def __init__(
        self,
        base_url: str,
        *,
        journal: FailureJournal,
        http_client: Optional[httpx.AsyncClient] = None,
        beacon_timeout: float = 2.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.base_url = base_url.rstrip("/")
        self.journal = journal
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._beacon_timeout = beacon_timeout
        self._clock = clock
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: RelaySettings, **kwargs) -> "RelayClient":
        return cls(
            settings.base_url,
            journal=FailureJournal(settings.failure_log_path),
            beacon_timeout=settings.beacon_timeout,
            **kwargs,
        )

    def _key_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key, safe='')}"

    async def _get_json(self, action: str, url: str, params: Optional[dict] = None) -> Any:
        resp = await self._http.get(url, params=params)
        if not resp.is_success:
            logger.error("Relay error trying to %s: %s %s", action, resp.status_code, resp.text)
            raise RemoteHTTPError(action, resp.status_code, resp.text)
        return resp.json() if resp.content else None

    async def set_value(self, key: str, value: Any) -> Any:
        await self._get_json("set value", self._key_url(key), params={"value": json.dumps(value)})
        return value

    async def update_value(self, key: str, updater: Callable[[Any], Any]) -> Any:
        """Non-atomic read-modify-write through the relay."""
        previous = await self.get_value(key)
        return await self.set_value(key, updater(previous))

    async def get_value(self, key: str) -> Any:
        data = await self._get_json("get value", self._key_url(key))
        raw = (data or {}).get("value")
        if not raw:
            return None
        return json.loads(raw)

    async def list(self) -> list[str]:
        data = await self._get_json("list keys", self.base_url) or {}
        # older relays answer with "list", current ones with "keys"
        return list(data.get("keys") or data.get("list") or [])

    async def list_keys(self) -> list[str]:
        return await self.list()

    async def cleanup(self) -> dict[str, list[str]]:
        data = await self._get_json("cleanup", self.base_url, params={"cleanup": "1"}) or {}
        return {"keys": list(data.get("keys") or []), "deletedKeys": list(data.get("deletedKeys") or [])}

    # ------------------------------------------------------------------ #
    # best-effort delete
    # ------------------------------------------------------------------ #

    def delete_key(self, key: str) -> asyncio.Task:
        """Schedule deletion of ``key`` and return immediately.

        Must be called with an event loop running. The returned task never
        raises; await it (or ``drain``) to wait for delivery.
        """
        task = asyncio.get_running_loop().create_task(self._deliver_delete(key))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver_delete(self, key: str) -> bool:
        url = self._key_url(key)
        params = {"delete": "1"}
        try:
            resp = await asyncio.wait_for(self._http.get(url, params=params), timeout=self._beacon_timeout)
            if resp.is_success:
                return True
            reason = f"status {resp.status_code}"
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            reason = type(exc).__name__

        stamp = self._clock().astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        self.journal.set(f"Beacon failed for key: {key} at {stamp}")
        logger.warning("Beacon failed (%s), falling back to request", reason, extra={"key": key})

        try:
            resp = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            logger.error("Fallback delete for %s failed: %s", key, exc, extra={"key": key})
            return False
        if not resp.is_success:
            logger.error(
                "Fallback delete for %s failed: %s",
                key,
                resp.status_code,
                extra={"key": key, "status_code": resp.status_code},
            )
            return False
        return True

    def check_beacon_failures(self) -> Optional[str]:
        """Log and clear a recorded delivery failure; returns it if there was one."""
        failure = self.journal.get()
        if failure:
            logger.warning(failure)
            self.journal.remove()
        return failure

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()


__all__ = ["RelayClient"]
