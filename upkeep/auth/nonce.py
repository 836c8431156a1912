"""Action nonces: short-lived signed tokens tying one action to one actor.

A nonce minted for ``rollback:my-plugin/my-plugin.php`` by ``alice`` only
verifies for that same action and actor until it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from upkeep.exceptions import NonceError

logger = logging.getLogger(__name__)

_NONCE_TYPE = "nonce"


def rollback_action(plugin_id: str) -> str:
    return f"rollback:{plugin_id}"


def recheck_action(plugin_id: str) -> str:
    return f"check-update:{plugin_id}"


class NonceManager:
    """Mint and verify action nonces.

    Args:
        secret_key: HMAC secret. Defaults to ``config.secret_key``.
        algorithm: JWT algorithm. Defaults to ``config.jwt_algorithm``.
        ttl_minutes: Lifetime of a nonce. Defaults to ``config.nonce_ttl_minutes``.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        ttl_minutes: Optional[int] = None,
    ) -> None:
        from upkeep.config import config
        self._secret = secret_key or config.secret_key
        self._algorithm = algorithm or config.jwt_algorithm
        self._ttl = timedelta(minutes=ttl_minutes if ttl_minutes is not None else config.nonce_ttl_minutes)

    def create(self, action: str, actor: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "typ": _NONCE_TYPE,
            "act": action,
            "sub": actor,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def check(self, nonce: str, action: str, actor: str) -> None:
        """Raise :class:`NonceError` unless ``nonce`` is valid for ``action`` and ``actor``."""
        if not nonce:
            raise NonceError("Nonce is missing")
        try:
            payload = jwt.decode(nonce, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise NonceError("Nonce expired", details={"action": action})
        except jwt.InvalidTokenError as exc:
            raise NonceError(f"Nonce invalid: {exc}", details={"action": action})
        if payload.get("typ") != _NONCE_TYPE or payload.get("act") != action:
            raise NonceError("Nonce was issued for another action", details={"action": action})
        if payload.get("sub") != actor:
            raise NonceError("Nonce was issued for another actor", details={"action": action})

    def verify(self, nonce: str, action: str, actor: str) -> bool:
        """Boolean form of :meth:`check`. Never raises."""
        try:
            self.check(nonce, action, actor)
        except NonceError as exc:
            logger.debug("Nonce rejected for '%s': %s", action, exc)
            return False
        return True
