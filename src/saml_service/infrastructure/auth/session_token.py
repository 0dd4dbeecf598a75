"""Short-lived session token for SAML-authenticated users.

The callback hands this token to the client layer in the redirect URL; the
client exchanges it for its own session. It is deliberately short-lived.

Token Format:
{
    "sub": "jdoe",                    # IdentityProfile.subject_id
    "email": "jdoe@ucsc.edu",
    "name": "Jane Doe",
    "roles": ["student"],
    "session_index": "_abc123",       # IdP session handle (may be null)
    "provider": "saml",
    "type": "saml_session",
    "iat": 1700000000,
    "exp": 1700000300
}
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from saml_service.domain.models.saml import SAMLUser

logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "saml_session"


def create_session_token(
    user: SAMLUser,
    secret_key: str,
    algorithm: str = "HS256",
    expire_minutes: int = 5,
) -> str:
    """Encode an authenticated SAML user as a signed session token.

    Args:
        user: Authenticated user
        secret_key: Signing secret
        algorithm: JWT algorithm
        expire_minutes: Token lifetime

    Returns:
        Encoded JWT
    """
    now = datetime.now(timezone.utc)
    claims = user.to_dict()
    payload = {
        "sub": claims.pop("id"),
        **claims,
        "provider": "saml",
        "type": SESSION_TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_session_token(token: str, secret_key: str, algorithm: str = "HS256") -> Dict[str, Any]:
    """Decode and verify a session token.

    Raises:
        ValueError: If the token is invalid, expired or not a SAML session token
    """
    try:
        claims = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as e:
        logger.warning(f"Session token validation failed: {e}")
        raise ValueError(f"Invalid session token: {e}") from e

    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Not a SAML session token")
    return claims
