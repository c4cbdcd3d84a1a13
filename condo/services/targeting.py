"""
Who is entitled to a new notification.

Selection itself is pure (``select_admins``, ``restrict_broadcast_targets``);
the async helpers only load the rows the rules need.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from condo.core.permissions import AccessScope, FullAccess, LimitedAccess, scope_for_admin
from condo.models.admin import Admin
from condo.models.condominium import Membership
from condo.services.errors import NoPermittedTargets
from condo.services.events import Audience, CondominiumAudience, EveryAdmin, MemberAudience

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Targets:
    admin_ids: frozenset[int] = field(default_factory=frozenset)
    user_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.admin_ids and not self.user_ids


def admin_is_target(access: AccessScope, condominium_ids: Iterable[int]) -> bool:
    """Full admins always; limited admins on any overlap with their allow-list."""
    if isinstance(access, FullAccess):
        return True
    return access.allows(frozenset(condominium_ids))


def select_admins(admins: Iterable[Admin], condominium_ids: Iterable[int]) -> frozenset[int]:
    relevant = frozenset(condominium_ids)
    return frozenset(
        admin.id for admin in admins
        if admin_is_target(scope_for_admin(admin), relevant)
    )


def restrict_broadcast_targets(sender: AccessScope, requested: Iterable[int]) -> frozenset[int]:
    """
    Drop the condominiums a limited sender may not address.
    Raises NoPermittedTargets when nothing is left.
    """
    requested = frozenset(requested)
    allowed = sender.restrict(requested)
    if not allowed:
        raise NoPermittedTargets(requested)
    if isinstance(sender, LimitedAccess) and allowed != requested:
        logger.info("Dropped condominiums %s outside sender scope", sorted(requested - allowed))
    return allowed


async def user_condominium_ids(session: AsyncSession, user_id: int) -> frozenset[int]:
    result = await session.exec(
        select(Membership.condominium_id).where(Membership.user_id == user_id)
    )
    return frozenset(result.all())


async def resident_ids(session: AsyncSession, condominium_ids: Iterable[int]) -> frozenset[int]:
    condominium_ids = list(condominium_ids)
    if not condominium_ids:
        return frozenset()
    result = await session.exec(
        select(Membership.user_id).where(Membership.condominium_id.in_(condominium_ids)).distinct()
    )
    return frozenset(result.all())


async def _all_admins(session: AsyncSession) -> list[Admin]:
    result = await session.exec(select(Admin))
    return list(result.all())


async def resolve_targets(session: AsyncSession, audience: Audience) -> Targets:
    if isinstance(audience, EveryAdmin):
        return Targets(admin_ids=frozenset(a.id for a in await _all_admins(session)))

    if isinstance(audience, MemberAudience):
        if audience.condominium_id is not None:
            condominium_ids = frozenset({audience.condominium_id})
        else:
            condominium_ids = await user_condominium_ids(session, audience.user_id)
        return Targets(admin_ids=select_admins(await _all_admins(session), condominium_ids))

    if isinstance(audience, CondominiumAudience):
        admin_ids = select_admins(await _all_admins(session), audience.condominium_ids)
        user_ids = frozenset()
        if audience.include_residents:
            user_ids = await resident_ids(session, audience.condominium_ids)
        return Targets(admin_ids=admin_ids, user_ids=user_ids)

    raise TypeError(f"Unknown audience {audience!r}")
