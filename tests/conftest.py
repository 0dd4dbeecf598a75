"""
Pytest configuration and fixtures for SAML service tests.

Provides fixtures for:
- IdP signing key and self-signed certificate
- Service-Provider configuration
- Signed SAML Response documents
- Test client
"""

import base64
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable, Optional

import pytest
import pytest_asyncio
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID
from httpx import ASGITransport, AsyncClient
from lxml import etree
from signxml import CanonicalizationMethod, DigestAlgorithm, SignatureMethod, XMLSigner, methods

from saml_service.config.settings import (
    ServiceProviderConfig,
    Settings,
    get_settings,
    get_sp_config,
    normalize_certificate,
)
from saml_service.core.saml.factory import get_request_builder, get_response_validator, reset_providers
from saml_service.core.saml.request_builder import SAMLRequestBuilder
from saml_service.core.saml.response_validator import SAMLResponseValidator
from saml_service.main import app

ENTRY_POINT = "https://idp.ucsc.edu/idp/profile/SAML2/Redirect/SSO"
SP_ISSUER = "https://learn.ucsc.edu"
CALLBACK_URL = "https://learn.ucsc.edu/api/auth/saml/callback"
IDP_ISSUER = "https://idp.ucsc.edu/idp/shibboleth"

SAMLP_NS = "urn:oasis:names:tc:SAML:2.0:protocol"
SAML_NS = "urn:oasis:names:tc:SAML:2.0:assertion"
EXC_C14N = CanonicalizationMethod.EXCLUSIVE_XML_CANONICALIZATION_1_0
INCLUSIVE_C14N = CanonicalizationMethod.CANONICAL_XML_1_0
STATUS_SUCCESS = "urn:oasis:names:tc:SAML:2.0:status:Success"
EMAIL_FORMAT = "urn:oasis:names:tc:SAML:1.1:nameid-format:emailAddress"
URI_NAME_FORMAT = "urn:oasis:names:tc:SAML:2.0:attrname-format:uri"

DEFAULT_ATTRIBUTES = {
    "urn:oid:0.9.2342.19200300.100.1.1": "jdoe",
    "urn:oid:0.9.2342.19200300.100.1.3": "jdoe@ucsc.edu",
    "urn:oid:2.5.4.42": "Jane",
    "urn:oid:2.5.4.4": "Doe",
    "urn:oid:1.3.6.1.4.1.5923.1.1.1.1": ["member", "student"],
}


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without external services")
    config.addinivalue_line("markers", "integration: HTTP-level tests against the FastAPI app")


def _saml_instant(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def generate_signing_material(common_name: str = "Test IdP", private_key=None) -> tuple:
    """Generate a key (RSA unless given) and matching self-signed PEM certificate."""
    now = datetime.now(timezone.utc)
    private_key = private_key or rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(private_key, hashes.SHA256())
    )
    return private_key, certificate.public_bytes(serialization.Encoding.PEM).decode()


def sign_element(
    element: etree._Element,
    signing_material: tuple,
    c14n_algorithm: CanonicalizationMethod = EXC_C14N,
) -> etree._Element:
    """Return a signxml-signed copy of element (enveloped, SHA-256, Reference to its ID)."""
    private_key, certificate_pem = signing_material
    signature_algorithm = (
        SignatureMethod.ECDSA_SHA256
        if isinstance(private_key, ec.EllipticCurvePrivateKey)
        else SignatureMethod.RSA_SHA256
    )
    signer = XMLSigner(
        method=methods.enveloped,
        signature_algorithm=signature_algorithm,
        digest_algorithm=DigestAlgorithm.SHA256,
        c14n_algorithm=c14n_algorithm,
    )
    return signer.sign(element, key=private_key, cert=certificate_pem, reference_uri=f"#{element.get('ID')}")


def build_response_element(
    *,
    attributes: Optional[dict] = None,
    name_id: Optional[str] = "jdoe@ucsc.edu",
    name_id_format: str = EMAIL_FORMAT,
    audience: Optional[str] = SP_ISSUER,
    destination: Optional[str] = CALLBACK_URL,
    recipient: Optional[str] = CALLBACK_URL,
    in_response_to: Optional[str] = None,
    not_before: Optional[datetime] = None,
    not_on_or_after: Optional[datetime] = None,
    status: str = STATUS_SUCCESS,
    session_index: Optional[str] = "_session-0001",
) -> etree._Element:
    """Build an unsigned samlp:Response with a single assertion."""
    now = datetime.now(timezone.utc)
    not_before = not_before or now - timedelta(minutes=1)
    not_on_or_after = not_on_or_after or now + timedelta(minutes=5)
    attributes = DEFAULT_ATTRIBUTES if attributes is None else attributes

    response_attributes = {"ID": "_response-0001", "Version": "2.0", "IssueInstant": _saml_instant(now)}
    if destination is not None:
        response_attributes["Destination"] = destination
    if in_response_to is not None:
        response_attributes["InResponseTo"] = in_response_to

    response = etree.Element(
        f"{{{SAMLP_NS}}}Response", response_attributes, nsmap={"samlp": SAMLP_NS, "saml": SAML_NS}
    )
    etree.SubElement(response, f"{{{SAML_NS}}}Issuer").text = IDP_ISSUER
    response_status = etree.SubElement(response, f"{{{SAMLP_NS}}}Status")
    etree.SubElement(response_status, f"{{{SAMLP_NS}}}StatusCode", Value=status)

    assertion = etree.SubElement(
        response,
        f"{{{SAML_NS}}}Assertion",
        {"ID": "_assertion-0001", "Version": "2.0", "IssueInstant": _saml_instant(now)},
    )
    etree.SubElement(assertion, f"{{{SAML_NS}}}Issuer").text = IDP_ISSUER

    subject = etree.SubElement(assertion, f"{{{SAML_NS}}}Subject")
    if name_id is not None:
        etree.SubElement(subject, f"{{{SAML_NS}}}NameID", Format=name_id_format).text = name_id
    confirmation = etree.SubElement(
        subject, f"{{{SAML_NS}}}SubjectConfirmation", Method="urn:oasis:names:tc:SAML:2.0:cm:bearer"
    )
    confirmation_attributes = {"NotOnOrAfter": _saml_instant(not_on_or_after)}
    if recipient is not None:
        confirmation_attributes["Recipient"] = recipient
    if in_response_to is not None:
        confirmation_attributes["InResponseTo"] = in_response_to
    etree.SubElement(confirmation, f"{{{SAML_NS}}}SubjectConfirmationData", confirmation_attributes)

    conditions = etree.SubElement(
        assertion,
        f"{{{SAML_NS}}}Conditions",
        NotBefore=_saml_instant(not_before),
        NotOnOrAfter=_saml_instant(not_on_or_after),
    )
    if audience is not None:
        restriction = etree.SubElement(conditions, f"{{{SAML_NS}}}AudienceRestriction")
        etree.SubElement(restriction, f"{{{SAML_NS}}}Audience").text = audience

    authn_statement = etree.SubElement(assertion, f"{{{SAML_NS}}}AuthnStatement", AuthnInstant=_saml_instant(now))
    if session_index is not None:
        authn_statement.set("SessionIndex", session_index)
    context = etree.SubElement(authn_statement, f"{{{SAML_NS}}}AuthnContext")
    etree.SubElement(context, f"{{{SAML_NS}}}AuthnContextClassRef").text = (
        "urn:oasis:names:tc:SAML:2.0:ac:classes:PasswordProtectedTransport"
    )

    if attributes:
        statement = etree.SubElement(assertion, f"{{{SAML_NS}}}AttributeStatement")
        for name, value in attributes.items():
            attribute = etree.SubElement(statement, f"{{{SAML_NS}}}Attribute", Name=name, NameFormat=URI_NAME_FORMAT)
            for item in [value] if isinstance(value, str) else value:
                etree.SubElement(attribute, f"{{{SAML_NS}}}AttributeValue").text = item

    return response


def encode_response(response: etree._Element) -> str:
    return base64.b64encode(etree.tostring(response)).decode("ascii")


@pytest.fixture(scope="session")
def idp_signing_material() -> tuple[rsa.RSAPrivateKey, str]:
    """IdP private key and PEM certificate (generated once per session)."""
    return generate_signing_material("UCSC Test IdP")


@pytest.fixture(scope="session")
def sp_signing_material() -> tuple[rsa.RSAPrivateKey, str]:
    """SP private key and PEM certificate for signed AuthnRequests and metadata."""
    return generate_signing_material("learn.ucsc.edu")


@pytest.fixture(scope="session")
def rogue_signing_material() -> tuple[rsa.RSAPrivateKey, str]:
    """Key pair the SP does not trust."""
    return generate_signing_material("Rogue IdP")


@pytest.fixture(scope="session")
def ecdsa_signing_material() -> tuple[ec.EllipticCurvePrivateKey, str]:
    """P-256 IdP key pair."""
    return generate_signing_material("EC IdP", ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def sp_private_key_pem(sp_signing_material) -> str:
    return sp_signing_material[0].private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def element_signer() -> Callable[..., etree._Element]:
    """sign_element() for tests that sign documents of their own."""
    return sign_element


@pytest.fixture
def idp_certificate_pem(idp_signing_material) -> str:
    return idp_signing_material[1]


@pytest.fixture
def make_sp_config(idp_certificate_pem) -> Callable[..., ServiceProviderConfig]:
    """Factory for ServiceProviderConfig; signature enforcement is on by default."""

    def _make(**overrides) -> ServiceProviderConfig:
        values = {
            "entry_point": ENTRY_POINT,
            "issuer": SP_ISSUER,
            "callback_url": CALLBACK_URL,
            "idp_certificate": normalize_certificate(idp_certificate_pem),
            "want_assertions_signed": True,
            "want_authn_response_signed": False,
        }
        values.update(overrides)
        return ServiceProviderConfig(**values)

    return _make


@pytest.fixture
def sp_config(make_sp_config) -> ServiceProviderConfig:
    return make_sp_config()


@pytest.fixture
def make_saml_response(idp_signing_material) -> Callable[..., str]:
    """Factory for base64-encoded SAML Responses.

    Keyword arguments are passed to build_response_element(), plus:
        sign_assertion: Sign the Assertion (default True)
        sign_response: Sign the Response (default False)
        signing_material: (key, certificate) to sign with (default: the IdP's)
        response_signing_material: Overrides signing_material for the Response
        c14n_algorithm: Canonicalization used by the signer (default exclusive)
        mutate: Callable applied to the Response element after signing
    """

    def _make(
        sign_assertion: bool = True,
        sign_response: bool = False,
        signing_material: Optional[tuple] = None,
        response_signing_material: Optional[tuple] = None,
        c14n_algorithm: CanonicalizationMethod = EXC_C14N,
        mutate: Optional[Callable[[etree._Element], None]] = None,
        **kwargs,
    ) -> str:
        material = signing_material or idp_signing_material
        response = build_response_element(**kwargs)
        if sign_assertion:
            assertion = response.find(f"{{{SAML_NS}}}Assertion")
            response.replace(assertion, sign_element(assertion, material, c14n_algorithm))
        if sign_response:
            response = sign_element(response, response_signing_material or material, c14n_algorithm)
        if mutate is not None:
            mutate(response)
        return encode_response(response)

    return _make



@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        login_page_path="/login",
        session_secret_key="test-secret-key",
        session_algorithm="HS256",
        session_token_expire_minutes=5,
    )


@pytest_asyncio.fixture
async def client(sp_config, test_settings) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with SAML component overrides."""
    reset_providers()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_sp_config] = lambda: sp_config
    app.dependency_overrides[get_request_builder] = lambda: SAMLRequestBuilder(sp_config)
    app.dependency_overrides[get_response_validator] = lambda: SAMLResponseValidator(sp_config)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_providers()
