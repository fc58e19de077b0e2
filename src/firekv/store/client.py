from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any, Callable, Mapping, Optional, Union

import httpx

from firekv.auth.credentials import ServiceAccountCredentials
from firekv.exceptions import RemoteHTTPError

from .codec import UNSET, decode, encode
from .hashing import data_hash
from .settings import FirestoreSettings

logger = logging.getLogger(__name__)

CLEANUP_MAX_AGE = timedelta(days=7)
TIMESTAMP_FIELD = "timestamp"

Updater = Callable[[Optional[dict[str, Any]]], Optional[Mapping[str, Any]]]


class Operator(StrEnum):
    LESS_THAN = "LESS_THAN"
    LESS_THAN_OR_EQUAL = "LESS_THAN_OR_EQUAL"
    GREATER_THAN = "GREATER_THAN"
    GREATER_THAN_OR_EQUAL = "GREATER_THAN_OR_EQUAL"
    EQUAL = "EQUAL"


def iso_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _doc_id(name: str) -> str:
    return name.rsplit("/", 1)[-1]


def _query_value(value: Union[str, int, float]) -> dict[str, Any]:
    if isinstance(value, str):
        return {"stringValue": value}
    return {"integerValue": str(int(value))}


def _body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


class FireStore:
    """Key-value store over the Firestore REST API.

    Every key is a document in ``settings.root_path``; the stored value is the
    document's fields. Each write stamps a ``timestamp`` field (ISO-8601 UTC)
    that ``cleanup`` later uses to expire old documents.

    Construct one per process and pass it around; it owns an
    ``httpx.AsyncClient`` unless one is handed in.
    """

    def __init__(
        self,
        settings: FirestoreSettings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[ServiceAccountCredentials] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self.credentials = credentials or ServiceAccountCredentials.from_settings(
            settings, http_client=self._http
        )
        self._clock = clock

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "FireStore":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # plumbing
    # ------------------------------------------------------------------ #

    @property
    def root_path(self) -> str:
        return self.settings.root_path

    def _doc_url(self, key: str) -> str:
        return f"{self.settings.collection_url}/{key}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        token = await self.credentials.get_token()
        headers = {"Authorization": f"Bearer {token}"}
        return await self._http.request(method, url, headers=headers, **kwargs)

    def _fail(self, action: str, resp: httpx.Response, *, key: Optional[str] = None) -> RemoteHTTPError:
        body = _body(resp)
        logger.error(
            "Error trying to %s: %s %s",
            action,
            resp.status_code,
            body,
            extra={
                "key": key,
                "collection": self.root_path,
                "http_method": resp.request.method,
                "status_code": resp.status_code,
            },
        )
        return RemoteHTTPError(action, resp.status_code, body)

    # ------------------------------------------------------------------ #
    # key/value operations
    # ------------------------------------------------------------------ #

    async def set_value(self, key: str, value: Any) -> Optional[dict[str, Any]]:
        """Write ``value`` under ``key`` and return what was stored.

        Non-mapping values are stored as ``{"value": value}``. ``None`` or ``UNSET``
        deletes the key.
        """
        if value is None or value is UNSET:
            await self.delete(key)
            return None

        doc = dict(value) if isinstance(value, Mapping) else {"value": value}
        doc[TIMESTAMP_FIELD] = iso_timestamp(self._clock())

        resp = await self._request("PATCH", self._doc_url(key), json={"fields": encode(doc)})
        if not resp.is_success:
            raise self._fail("set value", resp, key=key)
        logger.debug("Stored key %s", key, extra={"key": key, "collection": self.root_path})
        return doc

    async def update_value(self, key: str, updater: Updater) -> Optional[dict[str, Any]]:
        """Read-modify-write ``key`` through ``updater``.

        Not atomic: there is no precondition on the write, so a concurrent
        writer between the read and the PATCH is overwritten. An updater that
        returns None or ``UNSET`` deletes the key.
        """
        current = await self.get_value(key)
        return await self.set_value(key, updater(current))

    async def get_value(self, key: str) -> Optional[dict[str, Any]]:
        resp = await self._request("GET", self._doc_url(key))
        if resp.status_code == 404:
            logger.info('No document found for key "%s"', key, extra={"key": key, "collection": self.root_path})
            return None
        if not resp.is_success:
            raise self._fail("get value", resp, key=key)
        return decode(resp.json())

    async def delete(self, key: str) -> None:
        resp = await self._request("DELETE", self._doc_url(key))
        if not resp.is_success:
            raise self._fail("delete value", resp, key=key)
        logger.debug("Deleted key %s", key, extra={"key": key, "collection": self.root_path})

    async def list(self) -> dict[str, dict[str, Any]]:
        """Return every document in the root collection keyed by id.

        Follows ``nextPageToken`` until the collection is exhausted. Documents
        that decode to None are left out.
        """
        result: dict[str, dict[str, Any]] = {}
        params: dict[str, str] = {}
        while True:
            resp = await self._request("GET", self.settings.collection_url, params=params or None)
            if not resp.is_success:
                raise self._fail("list documents", resp)
            body = resp.json() or {}
            for doc in body.get("documents") or []:
                data = decode(doc)
                if data is not None:
                    result[_doc_id(doc["name"])] = data
            page_token = body.get("nextPageToken")
            if not page_token:
                return result
            params = {"pageToken": page_token}

    async def list_keys(self) -> list[str]:
        return list((await self.list()).keys())

    # ------------------------------------------------------------------ #
    # timestamp queries
    # ------------------------------------------------------------------ #

    async def query_by_timestamp(
        self,
        field: str,
        operator: Union[Operator, str],
        value: Union[str, int, float],
    ) -> list[dict[str, Any]]:
        """Run a single-field filter over the root collection.

        Returns ``[{"id": ..., "data": ...}]`` for every matching document.
        """
        op = Operator(operator)
        query = {
            "structuredQuery": {
                "from": [{"collectionId": self.root_path}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": field},
                        "op": op.value,
                        "value": _query_value(value),
                    }
                },
            }
        }
        resp = await self._request("POST", f"{self.settings.documents_url}:runQuery", json=query)
        if not resp.is_success:
            raise self._fail("run query", resp)

        matches = []
        for row in resp.json() or []:
            doc = row.get("document")
            if not doc:
                continue
            matches.append({"id": _doc_id(doc["name"]), "data": decode(doc) or {}})
        return matches

    async def delete_by_timestamp(
        self,
        field: str,
        operator: Union[Operator, str],
        value: Union[str, int, float],
    ) -> list[str]:
        """Delete every document matching the query, one request at a time."""
        documents = await self.query_by_timestamp(field, operator, value)
        deleted: list[str] = []
        for doc in documents:
            await self.delete(doc["id"])
            deleted.append(doc["id"])
        return deleted

    async def cleanup(self) -> list[str]:
        """Delete documents whose timestamp is older than seven days."""
        cutoff = iso_timestamp(self._clock() - CLEANUP_MAX_AGE)
        try:
            deleted = await self.delete_by_timestamp(TIMESTAMP_FIELD, Operator.LESS_THAN, cutoff)
        except Exception:
            logger.exception("Error in cleanup", extra={"collection": self.root_path})
            raise
        if deleted:
            logger.info("Cleanup removed %d document(s)", len(deleted), extra={"collection": self.root_path})
        return deleted

    async def get_data_hash(self, obj: Any) -> str:
        """Store ``obj`` under the hash of its JSON form and return the hash."""
        key = data_hash(obj)
        await self.set_value(key, obj)
        return key


__all__ = ["FireStore", "Operator", "iso_timestamp", "CLEANUP_MAX_AGE", "TIMESTAMP_FIELD"]
