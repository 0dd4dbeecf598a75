"""Session descriptor issued to the client layer after SAML login."""

from saml_service.infrastructure.auth.session_token import create_session_token, decode_session_token

__all__ = ["create_session_token", "decode_session_token"]
