"""SAML Response validation.

Turns a base64-encoded samlp:Response posted by the IdP into an AuthResult.
Validation steps run in a fixed order and the first failure wins:

1. decode and parse (hardened parser, exactly one plaintext Assertion)
2. XML signature(s) against the IdP certificate
3. temporal validity (Conditions and bearer SubjectConfirmationData)
4. audience restriction
5. destination / recipient
6. InResponseTo correlation (opt-in)
7. attribute extraction
8. profile normalization
9. role mapping

Exceptions never cross validate_response(); every failure becomes
AuthResult.failure() with a coarse SAMLErrorCode.
"""

import base64
import binascii
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from lxml import etree

from saml_service.config.settings import ServiceProviderConfig
from saml_service.core.saml.errors import SAMLError, SAMLValidationError
from saml_service.core.saml.request_store import RequestStore
from saml_service.core.saml.xmldsig import (
    find_signature,
    idp_certificate_pem,
    secure_parser,
    verify_enveloped_signature,
)
from saml_service.domain.models.saml import (
    AttributeValue,
    AuthResult,
    RawAssertionProfile,
    SAMLErrorCode,
    SAMLUser,
)
from saml_service.domain.services.profile_normalizer import is_valid_profile, normalize
from saml_service.domain.services.role_mapper import map_affiliations_to_roles

logger = logging.getLogger(__name__)

SAMLP_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
NS = {"samlp": SAMLP_NS, "saml": SAML_NS}

STATUS_SUCCESS = "urn:oasis:names:tc:SAML:2.0:status:Success"
BEARER = "urn:oasis:names:tc:SAML:2.0:cm:bearer"

_FRACTION = re.compile(r"\.(\d+)")


def _parse_instant(value: str) -> datetime:
    """Parse an xs:dateTime; naive values are taken as UTC."""
    text = value.strip()
    # fromisoformat() accepts at most microsecond precision
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        moment = datetime.fromisoformat(text)
    except ValueError as e:
        raise SAMLValidationError(f"Unparseable instant: {value!r}") from e
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class SAMLResponseValidator:
    """Validates IdP responses and produces authenticated SAML users."""

    def __init__(
        self,
        config: ServiceProviderConfig,
        request_store: Optional[RequestStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize response validator.

        Args:
            config: Service-Provider configuration
            request_store: Outstanding request IDs (required unless correlation is "never")
            clock: Returns the current UTC time (for testing)
        """
        self.config = config
        self.request_store = request_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate_response(self, raw_response: Optional[str]) -> AuthResult:
        """Validate a SAMLResponse form value.

        Args:
            raw_response: Base64-encoded samlp:Response

        Returns:
            AuthResult carrying the SAMLUser, or the failure code
        """
        try:
            user = self._validate(raw_response)
        except SAMLError as e:
            logger.warning(f"SAML response rejected ({e.code.value}): {e.message}")
            return AuthResult.failure(e.code, e.message)
        except Exception as e:
            logger.error(f"Unexpected error validating SAML response: {e}", exc_info=True)
            return AuthResult.failure(SAMLErrorCode.IDP_ERROR, "Unexpected error validating SAML response")

        logger.info(f"SAML authentication succeeded for subject: {user.id}")
        return AuthResult.ok(user)

    def _validate(self, raw_response: Optional[str]) -> SAMLUser:
        response = self._decode(raw_response)
        assertion = self._single_assertion(response)
        response, assertion = self._verify_signatures(response, assertion)
        # Identity values are read from comment-free text only.
        etree.strip_tags(response, etree.Comment)
        etree.strip_tags(assertion, etree.Comment)

        now = self._clock()
        confirmation_data = self._bearer_confirmation_data(assertion)
        self._check_time_window(assertion, confirmation_data, now)
        self._check_audience(assertion)
        self._check_destination(response, confirmation_data)
        self._check_in_response_to(response, confirmation_data)

        raw_profile = self._extract_profile(assertion)
        profile = normalize(raw_profile, self.config.default_email_domain)
        if not is_valid_profile(profile):
            raise SAMLValidationError(
                "Assertion lacks a usable subject identifier or email",
                SAMLErrorCode.MISSING_ATTRIBUTES,
            )

        return SAMLUser(profile=profile, roles=map_affiliations_to_roles(profile.affiliations))

    def _decode(self, raw_response: Optional[str]) -> etree._Element:
        if not raw_response or not raw_response.strip():
            raise SAMLValidationError("Empty SAMLResponse")
        try:
            document = base64.b64decode("".join(raw_response.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise SAMLValidationError("SAMLResponse is not valid base64") from e

        try:
            root = etree.fromstring(document, secure_parser())
        except etree.XMLSyntaxError as e:
            raise SAMLValidationError(f"SAMLResponse is not well-formed XML: {e}") from e
        docinfo = root.getroottree().docinfo
        if docinfo.doctype or docinfo.internalDTD is not None:
            raise SAMLValidationError("DOCTYPE declarations are not allowed")
        if root.tag != f"{{{SAMLP_NS}}}Response":
            raise SAMLValidationError(f"Unexpected root element: {root.tag}")

        status = root.find("samlp:Status/samlp:StatusCode", NS)
        status_value = status.get("Value") if status is not None else None
        if status_value != STATUS_SUCCESS:
            raise SAMLValidationError(f"IdP returned non-success status: {status_value}")
        return root

    @staticmethod
    def _single_assertion(response: etree._Element) -> etree._Element:
        if response.find("saml:EncryptedAssertion", NS) is not None:
            raise SAMLValidationError("Encrypted assertions are not supported")
        # Nested copies count too; the one Assertion must be a direct child.
        assertions = list(response.iter(f"{{{SAML_NS}}}Assertion"))
        if len(assertions) != 1 or assertions[0].getparent() is not response:
            raise SAMLValidationError(f"Expected exactly one Assertion, found {len(assertions)}")
        return assertions[0]

    def _verify_signatures(
        self,
        response: etree._Element,
        assertion: etree._Element,
    ) -> tuple[etree._Element, etree._Element]:
        """Verify signatures and return the (response, assertion) to read from.

        Whenever a signature covers an element, the signed form returned by
        the verifier replaces the parsed one.
        """
        config = self.config
        if not config.signature_enforced:
            logger.warning("SAML signature validation is DISABLED; skipping signature checks")
            return response, assertion

        certificate = idp_certificate_pem(config.idp_certificate)
        response_signature = find_signature(response)
        assertion_signature = find_signature(assertion)

        if config.want_authn_response_signed and response_signature is None:
            raise SAMLValidationError("Response is not signed", SAMLErrorCode.SIGNATURE_INVALID)
        if config.want_assertions_signed and assertion_signature is None:
            raise SAMLValidationError("Assertion is not signed", SAMLErrorCode.SIGNATURE_INVALID)

        # Each signature is checked on the element as received.
        signed_response = response
        signed_assertion = assertion
        if response_signature is not None:
            signed_response = verify_enveloped_signature(response, certificate)
            signed_assertion = signed_response.find("saml:Assertion", NS)
            if signed_assertion is None:
                raise SAMLValidationError("Signed Response carries no Assertion", SAMLErrorCode.SIGNATURE_INVALID)
        if assertion_signature is not None:
            signed_assertion = verify_enveloped_signature(assertion, certificate)
        return signed_response, signed_assertion

    @staticmethod
    def _bearer_confirmation_data(assertion: etree._Element) -> Optional[etree._Element]:
        for confirmation in assertion.iterfind("saml:Subject/saml:SubjectConfirmation", NS):
            if confirmation.get("Method") == BEARER:
                return confirmation.find("saml:SubjectConfirmationData", NS)
        return None

    def _check_time_window(
        self,
        assertion: etree._Element,
        confirmation_data: Optional[etree._Element],
        now: datetime,
    ) -> None:
        skew = timedelta(seconds=self.config.accepted_clock_skew_seconds)
        windows = [
            ("Conditions", assertion.find("saml:Conditions", NS)),
            ("SubjectConfirmationData", confirmation_data),
        ]
        for label, node in windows:
            if node is None:
                continue
            not_before = node.get("NotBefore")
            if not_before and now + skew < _parse_instant(not_before):
                raise SAMLValidationError(
                    f"{label} not yet valid (NotBefore={not_before})",
                    SAMLErrorCode.ASSERTION_EXPIRED,
                )
            not_on_or_after = node.get("NotOnOrAfter")
            if not_on_or_after and now - skew >= _parse_instant(not_on_or_after):
                raise SAMLValidationError(
                    f"{label} expired (NotOnOrAfter={not_on_or_after})",
                    SAMLErrorCode.ASSERTION_EXPIRED,
                )

    def _check_audience(self, assertion: etree._Element) -> None:
        audiences = [
            (audience.text or "").strip()
            for audience in assertion.iterfind("saml:Conditions/saml:AudienceRestriction/saml:Audience", NS)
        ]
        if not audiences:
            raise SAMLValidationError("Assertion has no AudienceRestriction", SAMLErrorCode.AUDIENCE_MISMATCH)
        if self.config.issuer not in audiences:
            raise SAMLValidationError(
                f"Assertion audience {audiences} does not include {self.config.issuer}",
                SAMLErrorCode.AUDIENCE_MISMATCH,
            )

    def _check_destination(self, response: etree._Element, confirmation_data: Optional[etree._Element]) -> None:
        # A response addressed to another endpoint was meant for another SP:
        # reported as an audience mismatch.
        callback_url = self.config.callback_url
        destination = response.get("Destination")
        if destination is not None and destination != callback_url:
            raise SAMLValidationError(
                f"Response Destination {destination} does not match {callback_url}",
                SAMLErrorCode.AUDIENCE_MISMATCH,
            )
        recipient = confirmation_data.get("Recipient") if confirmation_data is not None else None
        if recipient is not None and recipient != callback_url:
            raise SAMLValidationError(
                f"SubjectConfirmationData Recipient {recipient} does not match {callback_url}",
                SAMLErrorCode.AUDIENCE_MISMATCH,
            )

    def _check_in_response_to(self, response: etree._Element, confirmation_data: Optional[etree._Element]) -> None:
        mode = self.config.validate_in_response_to
        if mode == "never":
            return

        in_response_to = response.get("InResponseTo")
        if not in_response_to and confirmation_data is not None:
            in_response_to = confirmation_data.get("InResponseTo")

        if not in_response_to:
            if mode == "ifPresent":
                return
            raise SAMLValidationError("Response has no InResponseTo")

        if self.request_store is None:
            raise SAMLValidationError("No request store configured for InResponseTo validation")
        if not self.request_store.consume(in_response_to):
            raise SAMLValidationError(f"InResponseTo does not match an outstanding request: {in_response_to}")

    @staticmethod
    def _extract_profile(assertion: etree._Element) -> RawAssertionProfile:
        subject = assertion.find("saml:Subject", NS)
        if subject is None:
            raise SAMLValidationError("Assertion has no Subject")

        name_id = subject.find("saml:NameID", NS)
        authn_statement = assertion.find("saml:AuthnStatement", NS)

        collected: dict[str, list[str]] = {}
        for attribute in assertion.iterfind("saml:AttributeStatement/saml:Attribute", NS):
            name = attribute.get("Name")
            if not name:
                continue
            values = [(value.text or "").strip() for value in attribute.findall("saml:AttributeValue", NS)]
            collected.setdefault(name, []).extend(value for value in values if value)

        attributes: dict[str, AttributeValue] = {
            name: values[0] if len(values) == 1 else values
            for name, values in collected.items()
            if values
        }

        return RawAssertionProfile(
            name_id=(name_id.text or "").strip() if name_id is not None else "",
            name_id_format=name_id.get("Format") if name_id is not None else None,
            session_index=authn_statement.get("SessionIndex") if authn_statement is not None else None,
            issuer=(assertion.findtext("saml:Issuer", namespaces=NS) or "").strip() or None,
            attributes=attributes,
        )
