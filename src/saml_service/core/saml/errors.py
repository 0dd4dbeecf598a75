"""SAML exceptions.

Raised inside the core and converted to AuthResult failures (validation) or
startup failures (configuration) at the component boundary.
"""

from typing import Optional

from saml_service.domain.models.saml import SAMLErrorCode


class SAMLError(Exception):
    """Base exception for SAML errors."""

    code: SAMLErrorCode = SAMLErrorCode.IDP_ERROR

    def __init__(self, message: str, code: Optional[SAMLErrorCode] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"{self.code.value}: {message}")


class SAMLConfigError(SAMLError):
    """Invalid or incomplete Service-Provider configuration."""

    code = SAMLErrorCode.CONFIG_ERROR


class SAMLRequestError(SAMLError):
    """AuthnRequest could not be built or encoded."""

    code = SAMLErrorCode.CONFIG_ERROR


class SAMLValidationError(SAMLError):
    """IdP response failed one of the validation steps."""

    code = SAMLErrorCode.RESPONSE_INVALID
