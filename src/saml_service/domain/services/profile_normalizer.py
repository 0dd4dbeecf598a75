"""Profile normalization.

Maps the untyped IdP attribute bag to a canonical IdentityProfile. Every
field is resolved from an explicit, ordered list of candidate attribute
names: plain name first, then the standard OID form, then the alternate
short form.
"""

from typing import Optional, Sequence

from saml_service.domain.models.saml import AttributeValue, IdentityProfile, RawAssertionProfile

EMAIL_KEYS = ("email", "urn:oid:0.9.2342.19200300.100.1.3", "mail")
DISPLAY_NAME_KEYS = ("displayName", "urn:oid:2.16.840.1.113730.3.1.241", "cn")
FIRST_NAME_KEYS = ("firstName", "givenName", "urn:oid:2.5.4.42")
LAST_NAME_KEYS = ("lastName", "sn", "urn:oid:2.5.4.4")
UID_KEYS = ("uid", "urn:oid:0.9.2342.19200300.100.1.1")
AFFILIATION_KEYS = ("eduPersonAffiliation", "urn:oid:1.3.6.1.4.1.5923.1.1.1.1")


def _first_value(value: Optional[AttributeValue]) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    for item in value:
        if item and item.strip():
            return item.strip()
    return ""


def _resolve(attributes: dict[str, AttributeValue], keys: Sequence[str]) -> str:
    """Return the first non-empty value among the candidate keys."""
    for key in keys:
        value = _first_value(attributes.get(key))
        if value:
            return value
    return ""


def _resolve_list(attributes: dict[str, AttributeValue], keys: Sequence[str]) -> list[str]:
    for key in keys:
        value = attributes.get(key)
        if not value:
            continue
        values = [value] if isinstance(value, str) else list(value)
        values = [item for item in values if item]
        if values:
            return values
    return []


def _derive_display_name(first_name: str, last_name: str, email: str, name_id: str) -> str:
    # Order: "first last", email local part, NameID
    joined = " ".join(part for part in (first_name, last_name) if part)
    if joined:
        return joined
    if email:
        local_part = email.split("@", 1)[0]
        if local_part:
            return local_part
    return name_id


def normalize(
    raw: RawAssertionProfile,
    default_email_domain: Optional[str] = None,
) -> IdentityProfile:
    """Normalize a raw assertion profile into an IdentityProfile.

    Args:
        raw: Attribute bag and NameID data from the assertion
        default_email_domain: Domain used to synthesize an email from a
            non-email NameID when no email attribute was released

    Returns:
        IdentityProfile (check with is_valid_profile before use)
    """
    attributes = raw.attributes or {}
    name_id = (raw.name_id or "").strip()

    email = _resolve(attributes, EMAIL_KEYS)
    if not email and name_id:
        if "@" in name_id:
            email = name_id
        elif default_email_domain:
            email = f"{name_id}@{default_email_domain}"

    first_name = _resolve(attributes, FIRST_NAME_KEYS)
    last_name = _resolve(attributes, LAST_NAME_KEYS)

    display_name = _resolve(attributes, DISPLAY_NAME_KEYS)
    if not display_name:
        display_name = _derive_display_name(first_name, last_name, email, name_id)

    return IdentityProfile(
        subject_id=_resolve(attributes, UID_KEYS) or name_id,
        email=email,
        display_name=display_name,
        first_name=first_name,
        last_name=last_name,
        affiliations=_resolve_list(attributes, AFFILIATION_KEYS),
        session_index=raw.session_index,
        name_id=name_id,
    )


def is_valid_profile(profile: IdentityProfile) -> bool:
    """A profile needs a subject ID and at least one of email / NameID."""
    return bool(profile.subject_id) and bool(profile.email or profile.name_id)


def to_raw_profile(profile: IdentityProfile) -> RawAssertionProfile:
    """Inverse of normalize(): express a profile with canonical attribute names."""
    attributes: dict[str, AttributeValue] = {"uid": profile.subject_id}
    for key, value in (
        ("email", profile.email),
        ("displayName", profile.display_name),
        ("firstName", profile.first_name),
        ("lastName", profile.last_name),
    ):
        if value:
            attributes[key] = value
    if profile.affiliations:
        attributes["eduPersonAffiliation"] = list(profile.affiliations)

    return RawAssertionProfile(
        name_id=profile.name_id or profile.subject_id,
        session_index=profile.session_index,
        attributes=attributes,
    )
