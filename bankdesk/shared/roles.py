from enum import Enum


class Role(str, Enum):
    CUSTOMER = "customer"
    MANAGER = "manager"
    ADMIN = "admin"


class Capability(str, Enum):
    VIEW_ANY_FILE = "view_any_file"
    DELETE_ANY_FILE = "delete_any_file"
    BYPASS_APPROVAL = "bypass_approval"
    REVIEW_USERS = "review_users"
    VIEW_FILE_STATS = "view_file_stats"


_STAFF = frozenset({
    Capability.VIEW_ANY_FILE,
    Capability.DELETE_ANY_FILE,
    Capability.BYPASS_APPROVAL,
    Capability.REVIEW_USERS,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CUSTOMER: frozenset(),
    Role.MANAGER: _STAFF,
    Role.ADMIN: _STAFF | {Capability.VIEW_FILE_STATS},
}


def as_role(value) -> Role | None:
    """Coerce a stored role value; unknown strings map to None."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def capabilities_for(role) -> frozenset[Capability]:
    r = as_role(role)
    return ROLE_CAPABILITIES.get(r, frozenset()) if r else frozenset()


def has_capability(role, capability: Capability) -> bool:
    return capability in capabilities_for(role)
