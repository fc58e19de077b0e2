"""
Root conftest.py for firekv tests.

This file provides:
1. Test markers
2. An in-memory fake of the Firestore REST API and the OAuth token endpoint,
   served through ``httpx.MockTransport``
3. Fixtures wiring a ``FireStore`` to that fake with a controllable clock
"""

from __future__ import annotations

import json
import operator
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlparse

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from firekv.auth.credentials import ServiceAccountCredentials
from firekv.store.client import FireStore
from firekv.store.settings import FirestoreSettings


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    for name, desc in [
        ("store", "Firestore-backed key-value store tests"),
        ("relay", "Relay client/server tests"),
        ("security", "Credential and token tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# KEYS & CLOCK
# =============================================================================


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key) -> str:
    return (
        rsa_private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


class FrozenClock:
    """Manually advanced clock shared by the store and its credentials."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def timestamp(self) -> float:
        return self.now.timestamp()

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# FAKE FIRESTORE
# =============================================================================


_OPS = {
    "LESS_THAN": operator.lt,
    "LESS_THAN_OR_EQUAL": operator.le,
    "GREATER_THAN": operator.gt,
    "GREATER_THAN_OR_EQUAL": operator.ge,
    "EQUAL": operator.eq,
}


def _comparable(field: Dict[str, Any]) -> Optional[tuple]:
    if "stringValue" in field:
        return ("string", field["stringValue"])
    if "integerValue" in field:
        return ("number", int(field["integerValue"]))
    if "doubleValue" in field:
        return ("number", float(field["doubleValue"]))
    return None


class FakeFirestore:
    """Just enough of the Firestore v1 REST surface for the store.

    Documents live in ``self.docs`` as ``{collection: {id: document}}``.
    ``self.token_requests`` records every form posted to the token endpoint.
    """

    def __init__(self, settings: FirestoreSettings):
        self.settings = settings
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.token_requests: List[Dict[str, str]] = []
        self.token_payload: Optional[Dict[str, Any]] = None
        self.forced_error: Optional[httpx.Response] = None
        self.requests: List[httpx.Request] = []
        self.page_size: Optional[int] = None
        self._prefix = urlparse(settings.documents_url).path

    # -- helpers used by tests ------------------------------------------------
    def put_raw(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.docs.setdefault(collection, {})[doc_id] = {
            "name": self._name(collection, doc_id),
            "fields": fields,
        }

    def ids(self, collection: Optional[str] = None) -> List[str]:
        return sorted(self.docs.get(collection or self.settings.root_path, {}))

    @property
    def firestore_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if str(r.url) != self.settings.token_uri]

    # -- transport -----------------------------------------------------------
    def _name(self, collection: str, doc_id: str) -> str:
        return f"{self._prefix.split('/v1/', 1)[-1]}/{collection}/{doc_id}"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if str(request.url) == self.settings.token_uri:
            return self._token(request)

        auth = request.headers.get("authorization", "")
        if not auth.startswith("Bearer token-"):
            return httpx.Response(401, json={"error": {"code": 401, "status": "UNAUTHENTICATED"}})

        if self.forced_error is not None:
            return self.forced_error

        path = request.url.path
        if path == f"{self._prefix}:runQuery":
            return self._run_query(json.loads(request.content))

        parts = path[len(self._prefix) + 1 :].split("/")
        collection = parts[0]
        if len(parts) == 1 and request.method == "GET":
            return self._list(collection, request.url.params.get("pageToken"))

        doc_id = parts[1]
        bucket = self.docs.setdefault(collection, {})
        if request.method == "GET":
            doc = bucket.get(doc_id)
            if doc is None:
                return httpx.Response(404, json={"error": {"code": 404, "status": "NOT_FOUND"}})
            return httpx.Response(200, json=doc)
        if request.method == "PATCH":
            body = json.loads(request.content)
            doc = {"name": self._name(collection, doc_id), "fields": body.get("fields", {})}
            bucket[doc_id] = doc
            return httpx.Response(200, json=doc)
        if request.method == "DELETE":
            bucket.pop(doc_id, None)
            return httpx.Response(200, json={})
        return httpx.Response(405, json={"error": {"code": 405}})

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode("ascii")))
        self.token_requests.append(form)
        if self.token_payload is not None:
            return httpx.Response(400, json=self.token_payload)
        return httpx.Response(
            200,
            json={"access_token": f"token-{len(self.token_requests)}", "expires_in": 3600},
        )

    def _list(self, collection: str, page_token: Optional[str]) -> httpx.Response:
        docs = list(self.docs.get(collection, {}).values())
        if not self.page_size:
            return httpx.Response(200, json={"documents": docs} if docs else {})
        start = int(page_token or 0)
        body: Dict[str, Any] = {"documents": docs[start : start + self.page_size]}
        if start + self.page_size < len(docs):
            body["nextPageToken"] = str(start + self.page_size)
        return httpx.Response(200, json=body)

    def _run_query(self, body: Dict[str, Any]) -> httpx.Response:
        sq = body["structuredQuery"]
        collection = sq["from"][0]["collectionId"]
        flt = sq["where"]["fieldFilter"]
        field = flt["field"]["fieldPath"]
        op = _OPS[flt["op"]]
        target = _comparable(flt["value"])

        rows: List[Dict[str, Any]] = []
        for doc in self.docs.get(collection, {}).values():
            current = doc.get("fields", {}).get(field)
            cur = _comparable(current) if current else None
            if cur is None or target is None or cur[0] != target[0]:
                continue
            if op(cur[1], target[1]):
                rows.append({"document": doc, "readTime": "2026-10-17T12:00:00Z"})
        # Firestore answers an empty result with a bare readTime row
        return httpx.Response(200, json=rows or [{"readTime": "2026-10-17T12:00:00Z"}])


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def settings(private_key_pem) -> FirestoreSettings:
    return FirestoreSettings(
        project_id="demo-project",
        client_email="svc@demo-project.iam.gserviceaccount.com",
        private_key=private_key_pem,
    )


@pytest.fixture
def fake(settings) -> FakeFirestore:
    return FakeFirestore(settings)


@pytest_asyncio.fixture
async def http_client(fake):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)) as client:
        yield client


@pytest.fixture
def credentials(settings, http_client, clock) -> ServiceAccountCredentials:
    return ServiceAccountCredentials.from_settings(settings, http_client=http_client, clock=clock.timestamp)


@pytest.fixture
def store(settings, http_client, credentials, clock) -> FireStore:
    return FireStore(settings, http_client=http_client, credentials=credentials, clock=clock)
