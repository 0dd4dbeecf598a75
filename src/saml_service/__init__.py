"""SAML 2.0 Service-Provider authentication service.

Login redirect generation, IdP response validation, identity normalization
and role mapping for the university portal.
"""

__version__ = "1.0.0"
