# tokens de admin firmados (HMAC-SHA256) + login
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
from collections.abc import Callable
from typing import Any

from cinematic.api.settings import Settings

_logger = logging.getLogger("cinematic.auth")


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    pad = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + pad)


class AdminAuth:
    """
    Token = `<payload base64url>.<hmac-sha256 hex>`; payload = {"user", "exp"}.

    Sin el secreto no se puede fabricar ni alargar un token: la firma cubre
    usuario y expiración.
    """

    def __init__(self, settings: Settings, *, clock: Callable[[], float] = time.time) -> None:
        self._username = settings.admin_username
        self._password = settings.admin_password
        secret = settings.admin_token_secret or secrets.token_hex(32)
        self._secret = secret.encode("utf-8")
        self._ttl_s = int(settings.admin_token_ttl_seconds)
        self._clock = clock

    def _sign(self, payload_b64: str) -> str:
        return hmac.new(self._secret, payload_b64.encode("utf-8"), hashlib.sha256).hexdigest()

    def check_credentials(self, username: str | None, password: str | None) -> bool:
        user_ok = hmac.compare_digest((username or "").encode("utf-8"), self._username.encode("utf-8"))
        pass_ok = hmac.compare_digest((password or "").encode("utf-8"), self._password.encode("utf-8"))
        return user_ok and pass_ok

    def issue_token(self, username: str) -> str:
        payload = {"user": username, "exp": int((self._clock() + self._ttl_s) * 1000)}
        payload_b64 = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{payload_b64}.{self._sign(payload_b64)}"

    def login(self, username: str | None, password: str | None) -> str | None:
        if not self.check_credentials(username, password):
            _logger.warning("admin login rejected for user %r", username)
            return None
        _logger.info("admin login: %s", username)
        return self.issue_token(str(username))

    def verify(self, token: str | None) -> dict[str, Any] | None:
        """Payload si firma y expiración son válidas; None en cualquier otro caso."""
        if not token or token.count(".") != 1:
            return None
        payload_b64, signature = token.split(".", 1)
        if not hmac.compare_digest(self._sign(payload_b64).encode("utf-8"), signature.encode("utf-8")):
            return None
        try:
            payload = json.loads(_b64decode(payload_b64))
        except (ValueError, binascii.Error):
            return None
        if not isinstance(payload, dict):
            return None
        exp = payload.get("exp")
        if not isinstance(exp, int) or exp <= int(self._clock() * 1000):
            return None
        return payload
