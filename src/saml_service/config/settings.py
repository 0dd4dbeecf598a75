"""Configuration Settings for SAML Service

Manages environment variables and the immutable Service-Provider configuration.
"""

import logging
import re
from functools import lru_cache
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings

from saml_service.core.saml.errors import SAMLConfigError

logger = logging.getLogger(__name__)

DEFAULT_IDENTIFIER_FORMAT = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"

_PEM_ARMOR = re.compile(r"-----(BEGIN|END) [A-Z ]+-----")


class Settings(BaseSettings):
    """Application settings"""

    # Service info
    service_name: str = "saml-service"
    service_version: str = "1.0.0"
    environment: str = "development"

    # Server configuration
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # SAML Service Provider (defaults target the local SimpleSAMLphp test IdP)
    saml_entry_point: str = "http://localhost:8080/simplesaml/saml2/idp/SSOService.php"
    saml_issuer: str = "http://localhost:3000"
    saml_callback_url: str = "http://localhost:3000/api/auth/saml/callback"
    saml_idp_cert: str = ""
    saml_want_assertions_signed: Optional[bool] = None  # None = on in production only
    saml_want_authn_response_signed: Optional[bool] = None
    saml_identifier_format: str = DEFAULT_IDENTIFIER_FORMAT
    saml_disable_requested_authn_context: bool = True
    saml_force_authn: bool = False
    saml_validate_in_response_to: Literal["never", "ifPresent", "always"] = "never"
    saml_request_id_ttl_seconds: int = 28800  # 8 hours
    saml_accepted_clock_skew_seconds: int = 0
    saml_sp_private_key: str = ""
    saml_sp_cert: str = ""
    saml_signature_algorithm: Literal["sha1", "sha256", "sha512"] = "sha256"
    saml_default_email_domain: Optional[str] = None

    # Request-ID store for InResponseTo correlation
    request_store_backend: Literal["memory", "redis"] = "memory"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None

    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components"""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Session descriptor handed to the client layer
    session_secret_key: str = "dev-secret-change-in-production"
    session_algorithm: str = "HS256"
    session_token_expire_minutes: int = 5

    # Client-facing routes
    login_page_path: str = "/login"

    # CORS configuration
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


class ServiceProviderConfig(BaseModel):
    """Immutable SAML Service-Provider configuration.

    Built once from Settings by build_sp_config(). The IdP certificate is
    already in canonical form (raw base64, no PEM armor, no whitespace).
    """

    model_config = ConfigDict(frozen=True)

    entry_point: str
    issuer: str
    callback_url: str
    idp_certificate: str = ""
    want_assertions_signed: bool = False
    want_authn_response_signed: bool = False
    identifier_format: str = DEFAULT_IDENTIFIER_FORMAT
    disable_requested_authn_context: bool = True
    force_authn: bool = False
    validate_in_response_to: Literal["never", "ifPresent", "always"] = "never"
    request_id_ttl_seconds: int = 28800
    accepted_clock_skew_seconds: int = 0
    sp_private_key: str = ""
    sp_certificate: str = ""
    signature_algorithm: Literal["sha1", "sha256", "sha512"] = "sha256"
    default_email_domain: Optional[str] = None

    @property
    def signature_enforced(self) -> bool:
        return self.want_assertions_signed or self.want_authn_response_signed


def normalize_certificate(material: Optional[str]) -> str:
    """Strip PEM armor and all whitespace from certificate material.

    Args:
        material: PEM or raw base64 certificate (may be empty)

    Returns:
        Canonical raw base64 body
    """
    if not material:
        return ""
    return "".join(_PEM_ARMOR.sub("", material).split())


def _is_absolute_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def build_sp_config(settings: Settings) -> ServiceProviderConfig:
    """Validate settings and build the Service-Provider configuration.

    Args:
        settings: Application settings

    Returns:
        Immutable ServiceProviderConfig

    Raises:
        SAMLConfigError: If required values are missing or inconsistent
    """
    missing = [
        name
        for name, value in (
            ("SAML_ENTRY_POINT", settings.saml_entry_point),
            ("SAML_ISSUER", settings.saml_issuer),
            ("SAML_CALLBACK_URL", settings.saml_callback_url),
        )
        if not value or not value.strip()
    ]
    if missing:
        raise SAMLConfigError(f"SAML configuration requires: {', '.join(missing)}")

    for name, value in (
        ("SAML_ENTRY_POINT", settings.saml_entry_point),
        ("SAML_CALLBACK_URL", settings.saml_callback_url),
    ):
        if not _is_absolute_http_url(value.strip()):
            raise SAMLConfigError(f"{name} must be an absolute http(s) URL")

    production = settings.is_production
    want_assertions_signed = (
        production if settings.saml_want_assertions_signed is None else settings.saml_want_assertions_signed
    )
    want_authn_response_signed = (
        production
        if settings.saml_want_authn_response_signed is None
        else settings.saml_want_authn_response_signed
    )

    certificate = normalize_certificate(settings.saml_idp_cert)
    if not certificate:
        if production:
            raise SAMLConfigError("SAML_IDP_CERT is required in production")
        if want_assertions_signed or want_authn_response_signed:
            raise SAMLConfigError("Signature enforcement is enabled but SAML_IDP_CERT is empty")

    return ServiceProviderConfig(
        entry_point=settings.saml_entry_point.strip(),
        issuer=settings.saml_issuer.strip(),
        callback_url=settings.saml_callback_url.strip(),
        idp_certificate=certificate,
        want_assertions_signed=want_assertions_signed,
        want_authn_response_signed=want_authn_response_signed,
        identifier_format=settings.saml_identifier_format,
        disable_requested_authn_context=settings.saml_disable_requested_authn_context,
        force_authn=settings.saml_force_authn,
        validate_in_response_to=settings.saml_validate_in_response_to,
        request_id_ttl_seconds=settings.saml_request_id_ttl_seconds,
        accepted_clock_skew_seconds=settings.saml_accepted_clock_skew_seconds,
        sp_private_key=settings.saml_sp_private_key.strip(),
        sp_certificate=normalize_certificate(settings.saml_sp_cert),
        signature_algorithm=settings.saml_signature_algorithm,
        default_email_domain=settings.saml_default_email_domain or None,
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance

    Returns:
        Settings instance
    """
    return Settings()


@lru_cache()
def get_sp_config() -> ServiceProviderConfig:
    """Get the process-wide Service-Provider configuration

    Returns:
        ServiceProviderConfig resolved once per process

    Raises:
        SAMLConfigError: If the configuration is invalid
    """
    config = build_sp_config(get_settings())
    if not config.signature_enforced:
        logger.warning("SAML signature enforcement is DISABLED (development mode)")
    logger.info(f"SAML SP configured: issuer={config.issuer}, entry_point={config.entry_point}")
    return config
