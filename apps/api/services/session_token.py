"""Bearer session tokens identifying the authenticated user.

Sessions are issued by the identity provider in front of this service; the
ledger only verifies them and reads the subject.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "flux_session"


def create_session_token(user_id: str, email: Optional[str] = None, ttl: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    lifetime = ttl or timedelta(hours=max(int(settings.JWT_EXPIRATION_HOURS or 24), 1))
    claims: Dict[str, Any] = {
        "sub": user_id,
        "type": SESSION_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_session_token(token: str) -> Dict[str, Any]:
    """Return verified claims; raises ``ValueError`` for any unusable token."""
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid or expired session token.") from exc

    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Invalid session token type.")
    if not str(claims.get("sub") or "").strip():
        raise ValueError("Session token missing subject.")
    return claims
