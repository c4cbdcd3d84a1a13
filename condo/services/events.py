"""
Domain events that produce notifications.

Each event is its own type and carries the ids it originated from, so the
targeting rule and the related id are decided here, once, instead of by
inspecting ``Notification.type`` wherever a notification is handled.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, Optional, Tuple, Union

from condo.models.notification import NotificationType


# --- Audiences: who may be targeted -----------------------------------------

@dataclass(frozen=True)
class CondominiumAudience:
    """Admins entitled to any of these condominiums; optionally their residents too."""
    condominium_ids: frozenset[int]
    include_residents: bool = False


@dataclass(frozen=True)
class MemberAudience:
    """Admins entitled to the condominiums a resident belongs to."""
    user_id: int
    # An explicit condominium (e.g. chosen on a complaint form) replaces the memberships
    condominium_id: Optional[int] = None


@dataclass(frozen=True)
class EveryAdmin:
    """System-wide: every administrator, independent of scope."""


Audience = Union[CondominiumAudience, MemberAudience, EveryAdmin]


# --- Events -------------------------------------------------------------------

class NotificationEvent:
    type: ClassVar[NotificationType]

    @property
    def related_id(self) -> Optional[int]:
        return None

    @property
    def condominium_id(self) -> Optional[int]:
        return None

    @property
    def user_id(self) -> Optional[int]:
        return None

    @property
    def user_name(self) -> Optional[str]:
        return None

    @property
    def title(self) -> str:
        raise NotImplementedError

    @property
    def message(self) -> str:
        raise NotImplementedError

    def audience(self) -> Audience:
        raise NotImplementedError

    def push_payload(self, notification_id: int) -> dict:
        return {
            "notification_id": notification_id,
            "type": self.type.value,
            "related_id": self.related_id,
        }


@dataclass(frozen=True)
class OccurrenceCreated(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.OCCURRENCE

    occurrence_id: int
    occurrence_condominium_id: int
    occurrence_title: str
    condominium_name: Optional[str] = None

    @property
    def related_id(self):
        return self.occurrence_id

    @property
    def condominium_id(self):
        return self.occurrence_condominium_id

    @property
    def title(self):
        return f"New occurrence: {self.occurrence_title}"

    @property
    def message(self):
        return f"A new occurrence was opened in {self.condominium_name or 'the condominium'}: {self.occurrence_title}"

    def audience(self):
        return CondominiumAudience(frozenset({self.occurrence_condominium_id}))


@dataclass(frozen=True)
class MaintenanceCompleted(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.MAINTENANCE_COMPLETED

    occurrence_id: int
    occurrence_condominium_id: int
    occurrence_title: str
    maintenance_name: Optional[str] = None
    condominium_name: Optional[str] = None

    @property
    def related_id(self):
        return self.occurrence_id

    @property
    def condominium_id(self):
        return self.occurrence_condominium_id

    @property
    def title(self):
        return "Maintenance completed"

    @property
    def message(self):
        who = self.maintenance_name or "The maintenance team"
        where = self.condominium_name or "the condominium"
        return f'{who} finished "{self.occurrence_title}" in {where}. Awaiting verification.'

    def audience(self):
        return CondominiumAudience(frozenset({self.occurrence_condominium_id}))


@dataclass(frozen=True)
class WorkVerified(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.MAINTENANCE_VERIFICATION

    occurrence_id: int
    occurrence_condominium_id: int
    occurrence_title: str
    approved: bool
    feedback: Optional[str] = None

    @property
    def related_id(self):
        return self.occurrence_id

    @property
    def condominium_id(self):
        return self.occurrence_condominium_id

    @property
    def title(self):
        return "Work approved" if self.approved else "Work rejected"

    @property
    def message(self):
        if self.approved:
            return f'The work on "{self.occurrence_title}" was approved. The occurrence is now completed.'
        return f'The work on "{self.occurrence_title}" was rejected. Feedback: {self.feedback or ""}'

    def audience(self):
        return CondominiumAudience(frozenset({self.occurrence_condominium_id}))


@dataclass(frozen=True)
class AssemblyScheduled(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.ASSEMBLY

    assembly_id: int
    assembly_condominium_id: int
    meeting_date: date
    meeting_time: str
    condominium_name: Optional[str] = None

    @property
    def related_id(self):
        return self.assembly_id

    @property
    def condominium_id(self):
        return self.assembly_condominium_id

    @property
    def title(self):
        return "New assembly"

    @property
    def message(self):
        return f"{self.condominium_name or 'Condominium'}: assembly scheduled for {self.meeting_date.isoformat()} at {self.meeting_time}"

    def audience(self):
        return CondominiumAudience(frozenset({self.assembly_condominium_id}), include_residents=True)


@dataclass(frozen=True)
class DocumentAdded(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.DOCUMENT

    file_id: int
    assembly_title: str
    assembly_condominium_id: int
    condominium_name: Optional[str] = None

    @property
    def related_id(self):
        return self.file_id

    @property
    def condominium_id(self):
        return self.assembly_condominium_id

    @property
    def title(self):
        return "New document available"

    @property
    def message(self):
        return f'{self.condominium_name or "Condominium"}: a document was added to the assembly "{self.assembly_title}".'

    def audience(self):
        return CondominiumAudience(frozenset({self.assembly_condominium_id}), include_residents=True)


@dataclass(frozen=True)
class ProfileChanged(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.PROFILE_CHANGE

    resident_id: int
    resident_name: str
    # (field, old value, new value)
    changes: Tuple[Tuple[str, Optional[str], Optional[str]], ...] = ()
    primary_condominium_id: Optional[int] = None

    @property
    def related_id(self):
        return self.resident_id

    @property
    def condominium_id(self):
        return self.primary_condominium_id

    @property
    def user_id(self):
        return self.resident_id

    @property
    def user_name(self):
        return self.resident_name

    @property
    def title(self):
        return "Profile updated"

    @property
    def message(self):
        summary = ", ".join(f'{name}: "{old}" -> "{new}"' for name, old, new in self.changes)
        return f"{self.resident_name} changed: {summary}"

    def audience(self):
        return MemberAudience(self.resident_id)


@dataclass(frozen=True)
class ComplaintSubmitted(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.COMPLAINT

    message_id: int
    resident_id: int
    resident_name: str
    subject: str
    body: str
    explicit_condominium_id: Optional[int] = None
    fallback_condominium_id: Optional[int] = None

    @property
    def related_id(self):
        return self.message_id

    @property
    def condominium_id(self):
        if self.explicit_condominium_id is not None:
            return self.explicit_condominium_id
        return self.fallback_condominium_id

    @property
    def user_id(self):
        return self.resident_id

    @property
    def user_name(self):
        return self.resident_name

    @property
    def title(self):
        return f"New complaint: {self.subject}"

    @property
    def message(self):
        return f"{self.resident_name} sent a complaint: {self.body}"

    def audience(self):
        return MemberAudience(self.resident_id, self.explicit_condominium_id)


@dataclass(frozen=True)
class RequestSubmitted(ComplaintSubmitted):
    type: ClassVar[NotificationType] = NotificationType.REQUEST

    @property
    def title(self):
        return f"New request: {self.subject}"

    @property
    def message(self):
        return f"{self.resident_name} sent a request: {self.body}"


@dataclass(frozen=True)
class AdminBroadcast(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.ADMIN_MESSAGE

    message_id: int
    message_title: str
    target_condominium_ids: frozenset[int] = field(default_factory=frozenset)

    @property
    def related_id(self):
        return self.message_id

    @property
    def condominium_id(self):
        return min(self.target_condominium_ids) if self.target_condominium_ids else None

    @property
    def title(self):
        return "New message"

    @property
    def message(self):
        return f'New message from the administration: "{self.message_title}"'

    def audience(self):
        return CondominiumAudience(self.target_condominium_ids, include_residents=True)

    def push_payload(self, notification_id):
        payload = super().push_payload(notification_id)
        payload["title"] = self.message_title
        return payload


@dataclass(frozen=True)
class UserDeleted(NotificationEvent):
    type: ClassVar[NotificationType] = NotificationType.USER_DELETED

    resident_name: str

    @property
    def title(self):
        return "Resident deleted"

    @property
    def message(self):
        return f'The resident "{self.resident_name}" was removed from the system'

    def audience(self):
        return EveryAdmin()
