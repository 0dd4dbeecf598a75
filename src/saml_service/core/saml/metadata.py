"""Service-Provider metadata generation.

Produces the md:EntityDescriptor an IdP administrator imports to register
this SP: entity ID, ACS endpoint, NameID format and (optionally) the SP
signing certificate.
"""

from lxml import etree

from saml_service.config.settings import ServiceProviderConfig

MD_NS = "urn:oasis:names:tc:SAML:2.0:metadata"
DS_NS = "http://www.w3.org/2000/09/xmldsig#"
PROTOCOL_SUPPORT = "urn:oasis:names:tc:SAML:2.0:protocol"
HTTP_POST_BINDING = "urn:oasis:names:tc:SAML:2.0:bindings:HTTP-POST"


def _md(tag: str) -> str:
    return f"{{{MD_NS}}}{tag}"


def generate_sp_metadata(config: ServiceProviderConfig) -> str:
    """Generate SP metadata XML.

    Args:
        config: Service-Provider configuration

    Returns:
        Metadata XML document (with XML declaration)
    """
    root = etree.Element(_md("EntityDescriptor"), {"entityID": config.issuer}, nsmap={"md": MD_NS, "ds": DS_NS})
    descriptor = etree.SubElement(
        root,
        _md("SPSSODescriptor"),
        {
            "AuthnRequestsSigned": "true" if config.sp_private_key else "false",
            "WantAssertionsSigned": "true" if config.want_assertions_signed else "false",
            "protocolSupportEnumeration": PROTOCOL_SUPPORT,
        },
    )

    if config.sp_certificate:
        key_descriptor = etree.SubElement(descriptor, _md("KeyDescriptor"), {"use": "signing"})
        key_info = etree.SubElement(key_descriptor, f"{{{DS_NS}}}KeyInfo")
        x509_data = etree.SubElement(key_info, f"{{{DS_NS}}}X509Data")
        etree.SubElement(x509_data, f"{{{DS_NS}}}X509Certificate").text = config.sp_certificate

    etree.SubElement(descriptor, _md("NameIDFormat")).text = config.identifier_format
    etree.SubElement(
        descriptor,
        _md("AssertionConsumerService"),
        {"Binding": HTTP_POST_BINDING, "Location": config.callback_url, "index": "1"},
    )

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")
