"""SAML Authentication Routes.

SP-initiated SSO against a campus Identity Provider.

Key Endpoints:
- GET /api/auth/saml/login: Redirect the browser to the IdP
- POST /api/auth/saml/callback: Assertion Consumer Service (HTTP-POST binding)
- GET /api/auth/saml/metadata: SP metadata for IdP registration
- GET /api/auth/saml/config: Non-sensitive SAML configuration

Every failure ends in a redirect to the login page carrying a coarse error
code; details stay in the server log.
"""

import logging
from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from fastapi import APIRouter, Depends, Form, Query, Response, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from saml_service.config.settings import ServiceProviderConfig, Settings, get_settings, get_sp_config
from saml_service.core.saml.errors import SAMLError
from saml_service.core.saml.factory import get_request_builder, get_response_validator
from saml_service.core.saml.metadata import generate_sp_metadata
from saml_service.core.saml.request_builder import SAMLRequestBuilder
from saml_service.core.saml.response_validator import SAMLResponseValidator
from saml_service.domain.models.saml import SAMLErrorCode
from saml_service.infrastructure.auth.session_token import create_session_token

router = APIRouter(prefix="/api/auth/saml", tags=["saml"])
logger = logging.getLogger(__name__)


# ============================================================================
# Response Models
# ============================================================================

class SAMLConfigResponse(BaseModel):
    """Non-sensitive SAML configuration (no certificate material)."""
    entry_point: str
    issuer: str
    callback_url: str
    has_cert: bool
    want_assertions_signed: bool
    want_authn_response_signed: bool
    validate_in_response_to: str


# ============================================================================
# Helper Functions
# ============================================================================

def safe_relay_state(relay_state: Optional[str]) -> str:
    """Only allow local absolute paths as post-login targets (no open redirect)."""
    if not relay_state or not relay_state.startswith("/") or relay_state.startswith("//") or "\\" in relay_state:
        return "/"
    return relay_state


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


def _error_redirect(settings: Settings, code: SAMLErrorCode) -> RedirectResponse:
    return _redirect(f"{settings.login_page_path}?{urlencode({'error': code.value})}")


def _success_url(relay_state: str, token: str) -> str:
    parts = urlsplit(relay_state)
    extra = urlencode({"success": "true", "user": token})
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit(("", "", parts.path, query, parts.fragment))


# ============================================================================
# Endpoints
# ============================================================================

@router.get("/login")
async def saml_login(
    redirect: str = Query("/", description="Path to return to after login"),
    builder: SAMLRequestBuilder = Depends(get_request_builder),
    settings: Settings = Depends(get_settings),
):
    """Initiate SAML login.

    Redirects the browser to the IdP SSO endpoint. The return path travels
    to the IdP and back as RelayState.
    """
    try:
        login_url = builder.build_authn_request_url(relay_state=redirect)
    except SAMLError as e:
        logger.error(f"SAML login initiation failed: {e}")
        return _error_redirect(settings, SAMLErrorCode.CONFIG_ERROR)

    return _redirect(login_url)


@router.post("/callback")
async def saml_callback(
    saml_response: Optional[str] = Form(None, alias="SAMLResponse"),
    relay_state: Optional[str] = Form(None, alias="RelayState"),
    validator: SAMLResponseValidator = Depends(get_response_validator),
    settings: Settings = Depends(get_settings),
):
    """Assertion Consumer Service.

    Validates the posted SAMLResponse. On success, redirects to the relay
    state path with a short-lived session token; on failure, redirects to
    the login page with the error code.
    """
    if not saml_response:
        logger.warning("SAML callback without SAMLResponse")
        return _error_redirect(settings, SAMLErrorCode.RESPONSE_INVALID)

    result = validator.validate_response(saml_response)
    if not result.success:
        return _error_redirect(settings, result.error_code)

    token = create_session_token(
        result.user,
        secret_key=settings.session_secret_key,
        algorithm=settings.session_algorithm,
        expire_minutes=settings.session_token_expire_minutes,
    )
    target = safe_relay_state(relay_state)
    logger.info(f"SAML login completed: subject={result.user.id}, redirect={target}")
    return _redirect(_success_url(target, token))


@router.get("/metadata")
async def saml_metadata(config: ServiceProviderConfig = Depends(get_sp_config)):
    """Return SP metadata XML for IdP registration."""
    return Response(content=generate_sp_metadata(config), media_type="application/xml")


@router.get("/config", response_model=SAMLConfigResponse)
async def saml_config(config: ServiceProviderConfig = Depends(get_sp_config)):
    """Get SAML configuration (debugging / admin)."""
    return SAMLConfigResponse(
        entry_point=config.entry_point,
        issuer=config.issuer,
        callback_url=config.callback_url,
        has_cert=bool(config.idp_certificate),
        want_assertions_signed=config.want_assertions_signed,
        want_authn_response_signed=config.want_authn_response_signed,
        validate_in_response_to=config.validate_in_response_to,
    )
