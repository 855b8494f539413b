"""
Role ranking helpers.

Roles form a linear hierarchy EMPLOYEE < MANAGER < HR_ADMIN < SUPER_ADMIN.
Permission checks compare ranks through role_at_least instead of matching
role strings at each call site.
"""
from app.models.employee import Role

ROLE_RANK = {
    Role.EMPLOYEE.value: 1,
    Role.MANAGER.value: 2,
    Role.HR_ADMIN.value: 3,
    Role.SUPER_ADMIN.value: 4,
}


def role_name(role):
    """
    Safely extract role name from either enum or string

    Args:
        role: Either a Role enum instance or a string

    Returns:
        str: The role name as string
    """
    return role.value if hasattr(role, "value") else str(role)


def role_rank(role) -> int:
    """Rank of a role; unknown roles rank below EMPLOYEE."""
    return ROLE_RANK.get(role_name(role), 0)


def role_at_least(actual, required) -> bool:
    """True when `actual` ranks at or above `required`."""
    return role_rank(actual) >= role_rank(required)
