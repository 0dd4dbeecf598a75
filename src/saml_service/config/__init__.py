"""Service configuration"""

from saml_service.config.settings import (
    ServiceProviderConfig,
    Settings,
    build_sp_config,
    get_settings,
    get_sp_config,
    normalize_certificate,
)

__all__ = [
    "Settings",
    "ServiceProviderConfig",
    "build_sp_config",
    "get_settings",
    "get_sp_config",
    "normalize_certificate",
]
