"""XML digital signature verification for SAML messages.

Enveloped XML-DSig signatures on a Response or Assertion are verified with
signxml against the configured IdP certificate. On top of the library checks:

- exactly one ds:Signature may sit directly under the signed element
- the signature's single Reference must resolve to that same element
  (guards against signature wrapping)
- callers read identity data only from the returned signed XML, which is the
  canonicalized, comment-free form the digest was computed over

Certificates are expected in canonical form (raw base64 DER), as produced by
saml_service.config.settings.normalize_certificate().
"""

import base64
import binascii
import logging
import textwrap
from functools import lru_cache
from typing import Optional

from cryptography import x509
from lxml import etree
from signxml import DigestAlgorithm, SignatureConfiguration, SignatureMethod, XMLVerifier
from signxml.exceptions import InvalidInput, InvalidSignature

from saml_service.core.saml.errors import SAMLError, SAMLValidationError
from saml_service.domain.models.saml import SAMLErrorCode

logger = logging.getLogger(__name__)

DS_NS = "http://www.w3.org/2000/09/xmldsig#"

SIGNATURE_CONFIG = SignatureConfiguration(
    location="./",
    signature_methods=frozenset({
        SignatureMethod.RSA_SHA1,
        SignatureMethod.RSA_SHA256,
        SignatureMethod.RSA_SHA512,
        SignatureMethod.ECDSA_SHA256,
    }),
    digest_algorithms=frozenset({
        DigestAlgorithm.SHA1,
        DigestAlgorithm.SHA256,
        DigestAlgorithm.SHA512,
    }),
)


def secure_parser() -> etree.XMLParser:
    """XML parser that never resolves entities, loads DTDs or touches the network."""
    return etree.XMLParser(resolve_entities=False, load_dtd=False, no_network=True, huge_tree=False)


def _ds(tag: str) -> str:
    return f"{{{DS_NS}}}{tag}"


def _invalid(message: str) -> SAMLValidationError:
    return SAMLValidationError(message, SAMLErrorCode.SIGNATURE_INVALID)


@lru_cache(maxsize=8)
def idp_certificate_pem(certificate: str) -> str:
    """Turn a canonical (raw base64 DER) certificate back into PEM.

    Raises:
        SAMLError: SAML_IDP_ERROR if the certificate cannot be parsed
    """
    try:
        x509.load_der_x509_certificate(base64.b64decode(certificate, validate=True))
    except (binascii.Error, ValueError) as e:
        raise SAMLError(f"Unable to parse IdP certificate: {e}", SAMLErrorCode.IDP_ERROR) from e

    body = "\n".join(textwrap.wrap(certificate, 64))
    return f"-----BEGIN CERTIFICATE-----\n{body}\n-----END CERTIFICATE-----\n"


def find_signature(element: etree._Element) -> Optional[etree._Element]:
    """Return the ds:Signature that is a direct child of element, if any."""
    signatures = element.findall(_ds("Signature"))
    if len(signatures) > 1:
        raise _invalid(f"Multiple signatures on {etree.QName(element).localname}")
    return signatures[0] if signatures else None


def verify_enveloped_signature(element: etree._Element, certificate_pem: str) -> etree._Element:
    """Verify the enveloped signature that is a direct child of element.

    Args:
        element: Signed Response or Assertion element
        certificate_pem: IdP certificate (PEM)

    Returns:
        The signed element as covered by the digest (signature removed,
        canonicalized, without comments)

    Raises:
        SAMLValidationError: SAML_SIGNATURE_INVALID on any verification failure
    """
    name = etree.QName(element).localname
    if find_signature(element) is None:
        raise _invalid(f"{name} is not signed")

    try:
        result = XMLVerifier().verify(
            element,
            x509_cert=certificate_pem,
            parser=secure_parser(),
            id_attribute="ID",
            expect_config=SIGNATURE_CONFIG,
        )
    except (InvalidSignature, InvalidInput) as e:
        raise _invalid(f"{name} signature does not verify: {e}") from e

    signed = result.signed_xml
    element_id = element.get("ID")
    if signed is None or signed.tag != element.tag or not element_id or signed.get("ID") != element_id:
        raise _invalid("Signature Reference does not point at the signed element")

    logger.debug(f"Verified {name} signature")
    return signed
