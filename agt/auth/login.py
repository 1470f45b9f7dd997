"""Email verification-code login against the AGTHub API.

The flow has two steps: request a code for an email address, then redeem
the code for a CLI token. The CLI stores the token in the config file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from agt.errors import AuthError
from agt.registry.client import error_message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class LoginResult:
    token: str
    expires_at: str = ""
    email: str = ""
    name: str = ""


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------

def _post(
    url: str,
    payload: dict,
    transport: httpx.BaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> dict:
    logger.debug("POST %s", url)
    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.post(url, json=payload)
    except httpx.HTTPError as e:
        raise AuthError(f"Failed to reach {url}: {e}") from e

    if response.status_code >= 400:
        raise AuthError(error_message(response))
    try:
        body = response.json()
    except ValueError:
        body = {}
    return body if isinstance(body, dict) else {}


# ---------------------------------------------------------------------------
# Login steps
# ---------------------------------------------------------------------------

def send_code(
    api_url: str,
    email: str,
    transport: httpx.BaseTransport | None = None,
) -> None:
    """Ask the server to email a login code to *email*."""
    _post(
        f"{api_url.rstrip('/')}/api/auth/send-code",
        {"email": email, "type": "login"},
        transport=transport,
    )


def redeem_code(
    api_url: str,
    email: str,
    code: str,
    transport: httpx.BaseTransport | None = None,
) -> LoginResult:
    """Exchange a verification code for a CLI token.

    Raises:
        AuthError: the server rejected the code or returned no token.
    """
    body = _post(
        f"{api_url.rstrip('/')}/api/cli/login",
        {"email": email, "code": code},
        transport=transport,
    )
    token = body.get("token")
    if not token:
        raise AuthError(str(body.get("error") or "Login failed: no token returned"))

    user = body.get("user") or {}
    return LoginResult(
        token=token,
        expires_at=str(body.get("expiresAt") or ""),
        email=user.get("email") or email,
        name=user.get("name") or "",
    )
