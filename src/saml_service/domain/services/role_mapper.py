"""Affiliation to role mapping.

Affiliation strings differ in casing and spelling between campus IdPs, so
matching is case-insensitive substring matching. Branch order is significant:
faculty/instructor, then staff, then admin/administrator, then student.
"""

from typing import Iterable, Optional, Union

from saml_service.domain.models.saml import Role

_RULES: tuple[tuple[tuple[str, ...], Role], ...] = (
    (("faculty", "instructor"), Role.INSTRUCTOR),
    (("staff",), Role.STAFF),
    (("admin", "administrator"), Role.ADMIN),
    (("student",), Role.STUDENT),
)


def _match_role(affiliation: str) -> Optional[Role]:
    normalized = affiliation.lower()
    for needles, role in _RULES:
        if any(needle in normalized for needle in needles):
            return role
    return None


def map_affiliations_to_roles(
    affiliations: Union[Iterable[str], str, None]
) -> list[Role]:
    """Map eduPersonAffiliation values to application roles.

    Each affiliation contributes at most one role (first matching branch).
    Different affiliations may contribute different roles.

    Args:
        affiliations: Affiliation value(s) from the assertion

    Returns:
        De-duplicated roles in insertion order, never empty (defaults to student)
    """
    if not affiliations:
        return [Role.STUDENT]
    if isinstance(affiliations, str):
        affiliations = [affiliations]

    roles: list[Role] = []
    for affiliation in affiliations:
        if not affiliation:
            continue
        role = _match_role(affiliation)
        if role is not None and role not in roles:
            roles.append(role)

    if not roles:
        roles.append(Role.STUDENT)
    return roles
