"""Signed calls to the S3-compatible backend store.

The gateway only needs one capability from the store: send a request
(method, URL, headers, optional body) and get back a status, headers and a
body stream. ``StorageBackend`` describes that capability; ``SignedS3Backend``
implements it with botocore's SigV4 signer on top of an httpx connection
pool. Tests substitute an ``httpx.MockTransport`` for the network.
"""

from collections.abc import AsyncIterable, Mapping
from typing import Protocol

import httpx
import structlog
from botocore.auth import S3SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.config import Config
from botocore.credentials import Credentials

from s3_gateway.config import Settings

logger = structlog.get_logger(__name__)

# Bodies are streamed straight through, so the payload is never hashed
_UNSIGNED_PAYLOAD_CONFIG = Config(s3={"payload_signing_enabled": False})

RequestContent = bytes | AsyncIterable[bytes] | None


class StorageBackend(Protocol):
    """Anything that can send a signed request to the object store."""

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: RequestContent = None,
    ) -> httpx.Response:
        """Send the request and return the response with its body unread."""
        ...

    async def aclose(self) -> None:
        ...


class SignedS3Backend:
    """SigV4-signing backend client."""

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._credentials = Credentials(
            access_key=settings.s3_access_key_id,
            secret_key=settings.s3_secret_access_key,
        )
        self._region = settings.s3_region
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.backend_timeout, read=settings.backend_read_timeout),
            transport=transport,
            trust_env=False,
        )

    def sign(self, method: str, url: str, headers: Mapping[str, str] | None = None) -> dict[str, str]:
        """
        Return ``headers`` plus the SigV4 authentication headers for the request.

        Adds Authorization, X-Amz-Date and X-Amz-Content-SHA256
        (always UNSIGNED-PAYLOAD).
        """
        aws_request = AWSRequest(method=method, url=url, headers=dict(headers or {}))
        aws_request.context["client_config"] = _UNSIGNED_PAYLOAD_CONFIG
        S3SigV4Auth(self._credentials, "s3", self._region).add_auth(aws_request)
        return dict(aws_request.headers.items())

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: RequestContent = None,
    ) -> httpx.Response:
        signed_headers = self.sign(method, url, headers)
        request = self._client.build_request(method, url, headers=signed_headers, content=content)

        logger.debug("backend_request", method=method, url=url)

        return await self._client.send(request, stream=True)

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()
