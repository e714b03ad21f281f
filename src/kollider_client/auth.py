"""
Authentication and signing utilities for Kollider API
"""

import base64
import binascii
import hashlib
import hmac
import json
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from .constants import WS_AUTH_METHOD
from .errors import CredentialsError


@dataclass(frozen=True)
class KolliderCredentials:
    """
    Container for API credentials.

    ``api_secret`` holds the raw secret bytes; the exchange hands out the
    secret base64-encoded, use ``from_base64`` to build credentials from it.
    """
    api_key: str
    api_secret: bytes = field(repr=False)
    passphrase: str = field(repr=False)

    def __post_init__(self):
        """Validate credentials after initialization."""
        if not self.api_key:
            raise CredentialsError("API key cannot be empty")
        if not isinstance(self.api_secret, (bytes, bytearray)):
            raise CredentialsError("API secret must be raw bytes, use from_base64() for encoded secrets")
        if not self.api_secret:
            raise CredentialsError("Invalid length of API secret: 0")

    @classmethod
    def from_base64(cls, api_key: str, api_secret: str, passphrase: str) -> "KolliderCredentials":
        """Create credentials from the base64 secret issued by the exchange."""
        try:
            secret = base64.b64decode(api_secret, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise CredentialsError(f"Failed to parse API secret from base64: {e}") from e
        return cls(api_key=api_key, api_secret=secret, passphrase=passphrase)

    @classmethod
    def from_env(cls) -> "KolliderCredentials":
        """Create credentials from KOLLIDER_API_KEY/SECRET/PASSWORD."""
        return cls.from_base64(
            api_key=os.getenv("KOLLIDER_API_KEY", ""),
            api_secret=os.getenv("KOLLIDER_API_SECRET", ""),
            passphrase=os.getenv("KOLLIDER_API_PASSWORD", ""),
        )


def serialize_body(body: Union[None, str, Dict[str, Any]]) -> str:
    """Serialize a request body the way it is signed and sent: compact JSON."""
    if body is None:
        return ""
    if isinstance(body, str):
        return "".join(body.split())
    return json.dumps(body, separators=(",", ":"))


def sign(
    secret: bytes,
    timestamp: Union[int, str],
    method: str,
    route: str = "",
    body: Union[None, str, Dict[str, Any]] = None,
) -> str:
    """
    Compute BASE64(HMAC_SHA256(timestamp + method + route + body, secret)).

    For WebSocket authentication ``method`` is the literal "authentication"
    and route/body are empty.
    """
    payload = f"{timestamp}{method}{route}{serialize_body(body)}"
    digest = hmac.new(secret, payload.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class KolliderSigner:
    """
    Handles request signing for Kollider API authentication.

    The same HMAC-SHA256 construction authenticates REST requests (through
    headers) and the WebSocket session (through the authenticate message).
    """

    def __init__(self, credentials: KolliderCredentials):
        """
        Initialize the signer with API credentials.

        Args:
            credentials: API credentials containing key, secret and passphrase
        """
        self.credentials = credentials

    @staticmethod
    def timestamp() -> int:
        """Current Unix time in whole seconds."""
        return int(time.time())

    def sign(
        self,
        timestamp: Union[int, str],
        method: str,
        route: str = "",
        body: Union[None, str, Dict[str, Any]] = None,
    ) -> str:
        """Sign the given request components with the API secret."""
        return sign(self.credentials.api_secret, timestamp, method, route, body)

    def auth_message(self, timestamp: Optional[int] = None):
        """
        Build the WebSocket authenticate message.

        The transmitted timestamp is exactly the one that was signed.
        """
        from .ws.messages import Authenticate

        ts = str(self.timestamp() if timestamp is None else timestamp)
        return Authenticate(
            token=self.credentials.api_key,
            passphrase=self.credentials.passphrase,
            signature=self.sign(ts, WS_AUTH_METHOD),
            timestamp=ts,
        )

    def rest_headers(
        self,
        method: str,
        route: str,
        body: Union[None, str, Dict[str, Any]] = None,
        timestamp: Optional[int] = None,
    ) -> Dict[str, str]:
        """
        Get authentication headers for a REST request.

        Args:
            method: HTTP method, upper case
            route: Request path including the API prefix, e.g. "/v1/user/account"
            body: JSON body, if any
            timestamp: Override for the signing time

        Returns:
            Dictionary containing required authentication headers
        """
        ts = str(self.timestamp() if timestamp is None else timestamp)
        return {
            "k-api-key": self.credentials.api_key,
            "k-passphrase": self.credentials.passphrase,
            "k-timestamp": ts,
            "k-signature": self.sign(ts, method.upper(), route, body),
        }
