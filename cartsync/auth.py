from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from jose import jwt, JWTError

# claims tried, in order, to find the user uid
_UID_CLAIMS = ("uid", "sub", "user_id", "id")


@dataclass(frozen=True)
class TokenIdentity:
    user_uid: str
    expires_at: Optional[datetime] = None


def identity_from_token(token: Optional[str]) -> Optional[TokenIdentity]:
    """
    Read the user uid and expiry from a JWT without verifying its signature.
    The client never holds the signing key; the backend verifies every call.
    Returns None for opaque (non-JWT) tokens or tokens without a uid claim.
    """
    if not token:
        return None
    t = token
    if t.lower().startswith("bearer "):
        t = t.split(" ", 1)[1]
    try:
        claims = jwt.get_unverified_claims(t)
    except JWTError:
        return None

    user_uid = None
    for k in _UID_CLAIMS:
        if claims.get(k):
            user_uid = str(claims[k])
            break
    if not user_uid:
        return None

    expires_at = None
    exp = claims.get("exp")
    if exp is not None:
        try:
            expires_at = datetime.fromtimestamp(int(exp), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            expires_at = None
    return TokenIdentity(user_uid=user_uid, expires_at=expires_at)


def is_expired(identity: Optional[TokenIdentity], now: Optional[datetime] = None) -> bool:
    if identity is None or identity.expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return now >= identity.expires_at
