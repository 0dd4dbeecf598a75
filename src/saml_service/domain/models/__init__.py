"""Domain models for SAML Service"""

from saml_service.domain.models.saml import (
    AttributeValue,
    AuthnRequest,
    AuthResult,
    IdentityProfile,
    RawAssertionProfile,
    Role,
    SAMLErrorCode,
    SAMLUser,
)

__all__ = [
    "AttributeValue",
    "AuthnRequest",
    "AuthResult",
    "IdentityProfile",
    "RawAssertionProfile",
    "Role",
    "SAMLErrorCode",
    "SAMLUser",
]
