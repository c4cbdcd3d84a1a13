"""
Read-time visibility of notifications.

Links record who was entitled when a notification was created; these clauses
re-check the *current* scope on every list and unread count. The condominium
a notification belongs to is found from the row itself when it was stored
with one, and otherwise derived from its origin: the message targets, the
occurrence, or the memberships of the resident who caused it.
"""
from typing import Iterable

from sqlalchemy import and_, exists, false, or_, true
from sqlmodel import select

from condo.core.permissions import AccessScope, FullAccess
from condo.models.condominium import Membership
from condo.models.message import AdminMessageCondominium
from condo.models.notification import Notification, NotificationType
from condo.models.occurrence import Occurrence

OCCURRENCE_TYPES = (
    NotificationType.OCCURRENCE.value,
    NotificationType.MAINTENANCE_COMPLETED.value,
    NotificationType.MAINTENANCE_VERIFICATION.value,
)
RESIDENT_ORIGIN_TYPES = (
    NotificationType.PROFILE_CHANGE.value,
    NotificationType.COMPLAINT.value,
    NotificationType.REQUEST.value,
    # Legacy spellings written by older clients
    "complaint",
    "request",
)
SYSTEM_WIDE_TYPES = (NotificationType.USER_DELETED.value,)
# Types residents receive; older rows of these may predate their user links
RESIDENT_TYPES = (
    NotificationType.ADMIN_MESSAGE.value,
    NotificationType.ASSEMBLY.value,
    NotificationType.DOCUMENT.value,
)


def message_targets_any(condominium_ids: Iterable[int]):
    return and_(
        Notification.type == NotificationType.ADMIN_MESSAGE.value,
        exists(
            select(AdminMessageCondominium.id).where(
                AdminMessageCondominium.message_id == Notification.related_id,
                AdminMessageCondominium.condominium_id.in_(list(condominium_ids)),
            )
        ),
    )


def condominium_clause(condominium_ids: Iterable[int]):
    """Notifications that belong to any of ``condominium_ids``."""
    ids = list(condominium_ids)
    if not ids:
        return false()
    return or_(
        Notification.condominium_id.in_(ids),
        message_targets_any(ids),
        and_(
            Notification.type.in_(OCCURRENCE_TYPES),
            exists(
                select(Occurrence.id).where(
                    Occurrence.id == Notification.related_id,
                    Occurrence.condominium_id.in_(ids),
                )
            ),
        ),
        and_(
            Notification.type.in_(RESIDENT_ORIGIN_TYPES),
            exists(
                select(Membership.id).where(
                    Membership.user_id == Notification.user_id,
                    Membership.condominium_id.in_(ids),
                )
            ),
        ),
    )


def admin_visibility_clause(access: AccessScope):
    if isinstance(access, FullAccess):
        return true()
    if access.is_empty:
        return false()
    return or_(
        condominium_clause(access.condominium_ids),
        Notification.type.in_(SYSTEM_WIDE_TYPES),
    )


def resident_visibility_clause(user_id: int, condominium_ids: Iterable[int]):
    return or_(
        condominium_clause(condominium_ids),
        Notification.user_id == user_id,
    )
