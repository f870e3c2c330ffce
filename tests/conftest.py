"""Pytest configuration and fixtures.

The backend store is a real ``SignedS3Backend`` whose httpx transport is
replaced by ``httpx.MockTransport``: every outgoing request is signed and
recorded, and answered from a queue of scripted responses.
"""

import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from s3_gateway.backend import SignedS3Backend
from s3_gateway.config import Settings
from s3_gateway.main import create_app

TEST_USER = "admin"
TEST_PASSWORD = "test-password"
TEST_ENDPOINT = "https://s3.test.local"
TEST_BUCKET = "media"
TEST_ACCESS_KEY_ID = "AKIDTEST"


class FakeStore:
    """Records backend requests and replies with scripted responses."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._replies: list[httpx.Response | Exception] = []

    def reply(self, status_code: int = 200, body: bytes = b"", headers=None) -> None:
        """Queue the response for the next backend request.

        ``headers`` may be a dict or a list of pairs for repeated names.
        """
        headers = httpx.Headers(headers or {})
        if "content-length" not in headers:
            headers["Content-Length"] = str(len(body))
        # stream= keeps the body unread so the gateway can relay it raw
        self._replies.append(
            httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(body))
        )

    def fail(self, error: Exception) -> None:
        """Make the next backend request raise ``error`` in the transport."""
        self._replies.append(error)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._replies:
            reply = self._replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        return httpx.Response(200, stream=httpx.ByteStream(b""))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_settings(**overrides) -> Settings:
    """Build isolated settings that ignore the environment's .env file."""
    values = {
        "auth_user": TEST_USER,
        "auth_password": TEST_PASSWORD,
        "s3_endpoint": TEST_ENDPOINT,
        "s3_bucket_name": TEST_BUCKET,
        "s3_access_key_id": TEST_ACCESS_KEY_ID,
        "s3_secret_access_key": "test-secret",
        "s3_region": "auto",
        "s3_public_domain": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def store():
    """Scripted backend store."""
    return FakeStore()


@pytest.fixture
def settings():
    """Gateway settings without a public domain."""
    return make_settings()


@pytest.fixture
def app_factory(store):
    """Build an app wired to the fake store, with optional settings overrides."""

    def _factory(**overrides):
        app_settings = make_settings(**overrides)
        backend = SignedS3Backend(app_settings, transport=httpx.MockTransport(store))
        return create_app(app_settings, backend)

    return _factory


@pytest.fixture
def client(app_factory):
    """Create a test client for the gateway app."""
    with TestClient(app_factory()) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Return headers with the gateway's Basic credentials."""
    token = base64.b64encode(f"{TEST_USER}:{TEST_PASSWORD}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


@pytest.fixture
def listing_xml():
    """Build a ListObjectsV2 response body."""

    def _build(prefix: str = "", folders=(), objects=(), truncated: bool = False, token: str | None = None):
        parts = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">',
            f"<Name>{TEST_BUCKET}</Name>",
            f"<Prefix>{prefix}</Prefix>",
            "<Delimiter>/</Delimiter>",
            f"<KeyCount>{len(folders) + len(objects)}</KeyCount>",
            "<MaxKeys>1000</MaxKeys>",
            f"<IsTruncated>{'true' if truncated else 'false'}</IsTruncated>",
        ]
        if token:
            parts.append(f"<NextContinuationToken>{token}</NextContinuationToken>")
        for key, size, modified in objects:
            parts.append(
                "<Contents>"
                f"<Key>{key}</Key>"
                f"<LastModified>{modified}</LastModified>"
                '<ETag>"d41d8cd98f00b204e9800998ecf8427e"</ETag>'
                f"<Size>{size}</Size>"
                "<StorageClass>STANDARD</StorageClass>"
                "</Contents>"
            )
        for folder in folders:
            parts.append(f"<CommonPrefixes><Prefix>{folder}</Prefix></CommonPrefixes>")
        parts.append("</ListBucketResult>")
        return "".join(parts).encode()

    return _build
