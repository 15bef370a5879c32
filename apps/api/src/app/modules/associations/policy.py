"""
Access Policy

Every role-dependent decision goes through this module. An acting user is
classified once into one of three actor variants:

- SuperAdmin: global role superadmin; administers every account and is
  exempt from association checks at login
- AccountAdmin: holds an approved adminaccount association in one or more
  accounts and administers exactly those accounts
- Member: everyone else; administers nothing
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from app.modules.associations.models import Association, AssociationStatus
from app.modules.roles.models import RoleName

# Roles that may log in without an approved association
EXEMPT_ROLES: frozenset[str] = frozenset({RoleName.SUPERADMIN.value})

# Roles a user may request when self-registering
SELF_REGISTRATION_ROLES: frozenset[str] = frozenset(
    {
        RoleName.FAMILYADMIN.value,
        RoleName.FAMILYVIEWER.value,
        RoleName.COORDINADOR.value,
        RoleName.COLABORADOR.value,
    }
)

# Roles an account admin may grant when provisioning users into an account
PROVISIONABLE_ROLES: frozenset[str] = SELF_REGISTRATION_ROLES


@dataclass(frozen=True)
class SuperAdmin:
    user_id: UUID


@dataclass(frozen=True)
class AccountAdmin:
    user_id: UUID
    account_ids: frozenset[UUID] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Member:
    user_id: UUID


Actor = SuperAdmin | AccountAdmin | Member


def is_exempt_from_association(role_name: str) -> bool:
    """True if the global role may log in without any approved association."""
    return role_name in EXEMPT_ROLES


def resolve_actor(
    user_id: UUID,
    global_role: str,
    associations: Iterable[Association],
) -> Actor:
    """
    Classify a user from their global role and associations.

    Only approved adminaccount associations grant account administration.
    """
    if global_role == RoleName.SUPERADMIN.value:
        return SuperAdmin(user_id=user_id)

    administered = frozenset(
        association.account_id
        for association in associations
        if association.status == AssociationStatus.APPROVED
        and association.role_name == RoleName.ADMINACCOUNT.value
    )
    if administered:
        return AccountAdmin(user_id=user_id, account_ids=administered)
    return Member(user_id=user_id)


def can_administer(actor: Actor, account_id: UUID) -> bool:
    """True if the actor may resolve associations and provision users in the account."""
    if isinstance(actor, SuperAdmin):
        return True
    if isinstance(actor, AccountAdmin):
        return account_id in actor.account_ids
    return False


def administered_accounts(actor: Actor) -> frozenset[UUID] | None:
    """
    Accounts whose pending associations the actor may see.

    Returns:
        None for every account, otherwise the administered account IDs
        (empty for members)
    """
    if isinstance(actor, SuperAdmin):
        return None
    if isinstance(actor, AccountAdmin):
        return actor.account_ids
    return frozenset()


def can_create_accounts(actor: Actor) -> bool:
    return isinstance(actor, SuperAdmin)
