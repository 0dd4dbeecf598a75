"""Pure identity services: attribute normalization and role mapping"""

from saml_service.domain.services.profile_normalizer import (
    is_valid_profile,
    normalize,
    to_raw_profile,
)
from saml_service.domain.services.role_mapper import map_affiliations_to_roles

__all__ = [
    "normalize",
    "to_raw_profile",
    "is_valid_profile",
    "map_affiliations_to_roles",
]
