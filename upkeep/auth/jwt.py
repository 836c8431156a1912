"""JWT token management for API callers: create, validate."""

import jwt
from datetime import datetime, timedelta, timezone

from upkeep.config import config
from upkeep.exceptions import UpkeepError


class JWTManager:
    """JWT token management."""

    def create_token(self, actor: str, capabilities: list[str] = None) -> str:
        """Create a JWT token.

        Args:
            actor: Identity encoded as ``sub``. Nonces are bound to it.
            capabilities: Granted capabilities, e.g. ``["update_plugins"]``.

        Returns:
            JWT token string
        """
        payload = {
            "sub": actor,
            "capabilities": list(capabilities or []),
            "exp": datetime.now(timezone.utc) + timedelta(minutes=config.jwt_expiry_minutes),
            "iat": datetime.now(timezone.utc),
        }
        return jwt.encode(payload, config.secret_key, algorithm=config.jwt_algorithm)

    def verify_token(self, token: str) -> dict:
        """Verify and decode a JWT token.

        Returns:
            {"actor": str, "capabilities": list[str]}

        Raises:
            UpkeepError: On invalid/expired token
        """
        try:
            payload = jwt.decode(token, config.secret_key, algorithms=[config.jwt_algorithm])
            if payload.get("typ") == "nonce":
                raise UpkeepError("Invalid token")
            return {"actor": payload["sub"], "capabilities": list(payload.get("capabilities") or [])}
        except jwt.ExpiredSignatureError:
            raise UpkeepError("Token expired")
        except (jwt.InvalidTokenError, KeyError):
            raise UpkeepError("Invalid token")
