"""JWT authentication provider.

Accepts ES256 tokens issued by the identity provider (verified against its
JWKS) and HS256 tokens signed with the shared secret, which is what the
marketplace backend and the test suite mint.

Expected claims::

    {
        "sub": "user-uuid",
        "email": "guest@example.com",
        "role": "authenticated",
        "app_metadata": {"role": "admin"},
        "user_metadata": {"display_name": "Ana"},
        "exp": 1234567890
    }

``app_metadata.role`` wins over the top-level ``role`` so that an
administrator keeps their role whatever the token audience is.
"""

from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import httpx
import structlog
from jose import JWTError, jwt
from jose.backends import ECKey

from core.config import settings
from infrastructure.auth.provider import TokenUser

logger = structlog.get_logger()

_jwks_cache: dict[str, Any] | None = None


async def _get_jwks_keys(refresh: bool = False) -> dict[str, Any]:
    """Return signing keys by ``kid``, fetched once and cached."""
    global _jwks_cache
    if _jwks_cache is not None and not refresh:
        return _jwks_cache

    if not settings.jwt_jwks_url:
        return {}

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(settings.jwt_jwks_url, timeout=10.0)
            response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("jwks_fetch_failed", url=settings.jwt_jwks_url)
        return {}

    _jwks_cache = {k["kid"]: k for k in response.json().get("keys", []) if k.get("kid")}
    logger.info("jwks_fetched", key_count=len(_jwks_cache))
    return _jwks_cache


class JWTAuthProvider:
    """Validates bearer tokens for the REST API and the WebSocket handshake."""

    def __init__(
        self,
        secret_key: str = settings.jwt_secret_key,
        algorithm: str = settings.jwt_algorithm,
        expire_minutes: int = settings.jwt_expire_minutes,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    async def validate_token(self, token: str) -> Optional[TokenUser]:
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") == "ES256":
                claims = await self._decode_es256(token, header)
            else:
                claims = jwt.decode(
                    token,
                    self._secret_key,
                    algorithms=[self._algorithm],
                    options={"verify_aud": False},
                )
        except JWTError:
            return None

        if not claims:
            return None
        return self._to_user(claims)

    async def _decode_es256(self, token: str, header: dict) -> Optional[dict]:
        kid = header.get("kid")
        if not kid:
            return None

        key_data = (await _get_jwks_keys()).get(kid)
        if key_data is None:
            # Signing keys may have rotated since the last fetch.
            key_data = (await _get_jwks_keys(refresh=True)).get(kid)
        if key_data is None:
            logger.warning("jwks_key_not_found", kid=kid)
            return None

        return jwt.decode(
            token,
            ECKey(key_data, algorithm="ES256"),
            algorithms=["ES256"],
            options={"verify_aud": False},
        )

    @staticmethod
    def _to_user(claims: dict) -> Optional[TokenUser]:
        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            return None
        try:
            user_id = UUID(subject)
        except ValueError:
            return None

        user_metadata = claims.get("user_metadata") or {}
        app_metadata = claims.get("app_metadata") or {}
        return TokenUser(
            id=user_id,
            email=email,
            display_name=(
                user_metadata.get("display_name")
                or user_metadata.get("full_name")
                or claims.get("name")
            ),
            role=app_metadata.get("role") or claims.get("role"),
        )

    def create_token(self, user: TokenUser) -> str:
        """Mint an HS256 token for ``user``."""
        claims: dict[str, Any] = {
            "sub": str(user.id),
            "email": user.email,
            "aud": "authenticated",
            "role": "authenticated",
            "exp": datetime.utcnow() + timedelta(minutes=self._expire_minutes),
            "user_metadata": {"display_name": user.display_name},
        }
        if user.role and user.role != "authenticated":
            claims["app_metadata"] = {"role": user.role}
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)
