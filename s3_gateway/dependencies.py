"""FastAPI dependencies for authentication and gateway access.

Every API route sits behind a single shared username/password checked with
HTTP Basic auth. There is no per-route or per-method distinction.

Usage in routers:
    router = APIRouter(dependencies=[Depends(require_basic_auth)])

    @router.get("/list")
    async def list_files(gateway: Annotated[FileGateway, Depends(get_gateway)]):
        ...
"""

import secrets
from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from s3_gateway.config import Settings
from s3_gateway.gateway import FileGateway

logger = structlog.get_logger(__name__)

REALM = "S3 File Gateway"

# Security scheme for Swagger UI
security = HTTPBasic(
    scheme_name="Basic Auth",
    realm=REALM,
    description="Gateway username and password",
    auto_error=False,
)


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Invalid or missing credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "message": detail},
            headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
        )


def get_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_gateway(request: Request) -> FileGateway:
    """The application's shared ``FileGateway``."""
    return request.app.state.gateway


def verify_credentials(settings: Settings, username: str, password: str) -> bool:
    """
    Check a username/password pair against the configured one.

    Both parts are compared in constant time. When no password is
    configured every pair is rejected.
    """
    if not settings.auth_password:
        logger.warning("auth_password_not_configured")
        return False

    user_ok = secrets.compare_digest(username.encode(), settings.auth_user.encode())
    password_ok = secrets.compare_digest(password.encode(), settings.auth_password.encode())
    return user_ok and password_ok


async def require_basic_auth(
    credentials: Annotated[HTTPBasicCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """
    Reject the request unless it carries the gateway's Basic credentials.

    Returns:
        The authenticated username

    Raises:
        AuthenticationError: If credentials are missing or wrong
    """
    if credentials is None:
        logger.debug("auth_missing_credentials")
        raise AuthenticationError("Missing credentials")

    if not verify_credentials(settings, credentials.username, credentials.password):
        logger.warning("auth_invalid_credentials", username=credentials.username)
        raise AuthenticationError("Invalid credentials")

    return credentials.username
