"""SAML 2.0 Service-Provider core.

- request_builder: AuthnRequest + HTTP-Redirect binding
- response_validator: HTTP-POST response verification and identity extraction
- xmldsig: XML digital signature verification
- metadata: SP metadata document
- request_store: outstanding request IDs for InResponseTo correlation
"""
