"""SAML component factory.

Builds the request builder and response validator from the process-wide
Service-Provider configuration. Both share one request store so that IDs
issued at login can be consumed at the callback.
"""

import logging
from typing import Optional

from saml_service.config.settings import get_settings, get_sp_config
from saml_service.core.saml.request_builder import SAMLRequestBuilder
from saml_service.core.saml.request_store import RequestStore, create_request_store
from saml_service.core.saml.response_validator import SAMLResponseValidator

logger = logging.getLogger(__name__)

# Global instances (initialized on first call)
_request_store: Optional[RequestStore] = None
_request_store_initialized = False
_request_builder: Optional[SAMLRequestBuilder] = None
_response_validator: Optional[SAMLResponseValidator] = None


def _get_request_store() -> Optional[RequestStore]:
    global _request_store, _request_store_initialized

    if not _request_store_initialized:
        _request_store = create_request_store(get_sp_config(), get_settings())
        _request_store_initialized = True
    return _request_store


def get_request_builder() -> SAMLRequestBuilder:
    """Get the configured AuthnRequest builder.

    Raises:
        SAMLConfigError: If the SP configuration is invalid
    """
    global _request_builder

    if _request_builder is None:
        _request_builder = SAMLRequestBuilder(get_sp_config(), request_store=_get_request_store())
        logger.info("SAML request builder initialized")
    return _request_builder


def get_response_validator() -> SAMLResponseValidator:
    """Get the configured response validator.

    Raises:
        SAMLConfigError: If the SP configuration is invalid
    """
    global _response_validator

    if _response_validator is None:
        _response_validator = SAMLResponseValidator(get_sp_config(), request_store=_get_request_store())
        logger.info("SAML response validator initialized")
    return _response_validator


def reset_providers() -> None:
    """Reset the global instances (for testing)."""
    global _request_store, _request_store_initialized, _request_builder, _response_validator
    _request_store = None
    _request_store_initialized = False
    _request_builder = None
    _response_validator = None
