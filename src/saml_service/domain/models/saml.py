"""SAML Authentication Data Models

Purpose: Define data structures for SAML requests, assertion profiles and results

Key Components:
- Role: Closed set of application roles
- SAMLErrorCode: Error taxonomy surfaced across the validator boundary
- AuthnRequest: One SP-initiated login attempt
- RawAssertionProfile: Attribute bag as delivered by the IdP
- IdentityProfile: Canonical identity derived from the raw profile
- SAMLUser: IdentityProfile plus mapped roles
- AuthResult: Tagged success/failure outcome of response validation
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

AttributeValue = Union[str, list[str]]


class Role(str, Enum):
    """Application roles"""
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"
    STAFF = "staff"


class SAMLErrorCode(str, Enum):
    """SAML-specific error codes"""
    CONFIG_ERROR = "SAML_CONFIG_ERROR"
    RESPONSE_INVALID = "SAML_RESPONSE_INVALID"
    SIGNATURE_INVALID = "SAML_SIGNATURE_INVALID"
    ASSERTION_EXPIRED = "SAML_ASSERTION_EXPIRED"
    AUDIENCE_MISMATCH = "SAML_AUDIENCE_MISMATCH"
    MISSING_ATTRIBUTES = "SAML_MISSING_ATTRIBUTES"
    IDP_ERROR = "SAML_IDP_ERROR"
    NETWORK_ERROR = "SAML_NETWORK_ERROR"  # reserved for metadata fetching


@dataclass(frozen=True)
class AuthnRequest:
    """SAML authentication request

    Attributes:
        id: Unique request identifier (correlates with InResponseTo)
        issue_instant: Creation timestamp (UTC)
        relay_state: Opaque value round-tripped by the IdP
    """
    id: str
    issue_instant: datetime
    relay_state: Optional[str] = None


@dataclass
class RawAssertionProfile:
    """Raw profile data from an IdP assertion

    Attributes:
        name_id: NameID value (primary identifier from IdP)
        name_id_format: NameID format URI
        session_index: IdP session handle from the AuthnStatement
        issuer: Entity ID of the asserting IdP
        attributes: Attribute Name -> single value or ordered list of values
    """
    name_id: str = ""
    name_id_format: Optional[str] = None
    session_index: Optional[str] = None
    issuer: Optional[str] = None
    attributes: dict[str, AttributeValue] = field(default_factory=dict)


@dataclass
class IdentityProfile:
    """Canonical identity derived from a RawAssertionProfile

    Attributes:
        subject_id: Stable external identifier (uid, falling back to NameID)
        email: Best-effort email address
        display_name: Name shown to the user
        first_name: Given name
        last_name: Surname
        affiliations: Raw affiliation strings in received order
        session_index: IdP session handle (for future logout support)
        name_id: NameID the profile was derived from
    """
    subject_id: str
    email: str = ""
    display_name: str = ""
    first_name: str = ""
    last_name: str = ""
    affiliations: list[str] = field(default_factory=list)
    session_index: Optional[str] = None
    name_id: str = ""


@dataclass
class SAMLUser:
    """Authenticated SAML user: identity profile plus application roles"""
    profile: IdentityProfile
    roles: list[Role] = field(default_factory=lambda: [Role.STUDENT])

    @property
    def id(self) -> str:
        return self.profile.subject_id

    def to_dict(self) -> dict:
        """Convert to the client-facing user payload"""
        return {
            "id": self.profile.subject_id,
            "email": self.profile.email,
            "name": self.profile.display_name,
            "roles": [role.value for role in self.roles],
            "session_index": self.profile.session_index,
        }


@dataclass(frozen=True)
class AuthResult:
    """Result of SAML response validation

    Exactly one of user (success) or error_code (failure) is set.
    """
    success: bool
    user: Optional[SAMLUser] = None
    error_code: Optional[SAMLErrorCode] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, user: SAMLUser) -> "AuthResult":
        return cls(success=True, user=user)

    @classmethod
    def failure(cls, error_code: SAMLErrorCode, message: str) -> "AuthResult":
        return cls(success=False, error_code=error_code, message=message)
