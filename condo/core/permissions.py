"""
Administrator access scopes.

An administrator either has full access to every condominium or a limited
access restricted to an allow-list of condominium ids. The allow-list reaches
us in many shapes (JSON text in the admins table, a JSON header sent by the
frontend, bare scalars, numeric strings), so this module is the only place that
reads the raw form. Everything else works with ``FullAccess`` / ``LimitedAccess``.
"""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Union

logger = logging.getLogger(__name__)


class AdminScope(str, Enum):
    FULL = "full"
    LIMITED = "limited"


@dataclass(frozen=True)
class FullAccess:
    scope = AdminScope.FULL

    def allows(self, condominium_ids: Iterable[int]) -> bool:
        return True

    def restrict(self, condominium_ids: Iterable[int]) -> frozenset[int]:
        return frozenset(condominium_ids)

    def as_descriptor(self) -> dict:
        return {"scope": self.scope.value, "allowed_condominiums": []}


@dataclass(frozen=True)
class LimitedAccess:
    condominium_ids: frozenset[int] = frozenset()
    scope = AdminScope.LIMITED

    @property
    def is_empty(self) -> bool:
        return not self.condominium_ids

    def allows(self, condominium_ids: Iterable[int]) -> bool:
        # Any overlap is enough; an empty allow-list never matches.
        return not self.condominium_ids.isdisjoint(condominium_ids)

    def restrict(self, condominium_ids: Iterable[int]) -> frozenset[int]:
        return self.condominium_ids.intersection(condominium_ids)

    def as_descriptor(self) -> dict:
        return {
            "scope": self.scope.value,
            "allowed_condominiums": sorted(self.condominium_ids),
        }


AccessScope = Union[FullAccess, LimitedAccess]

NO_ACCESS = LimitedAccess(frozenset())


def _coerce_condominium_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None
    return None


def normalize_allowed_condominiums(raw: Any) -> frozenset[int]:
    """
    Canonical set of condominium ids from a loosely-typed allow-list.

    Accepts JSON text, comma separated text, a bare scalar, or any iterable of
    mixed numbers and numeric strings. Elements that are not integers are
    dropped. Never raises: anything unreadable yields the empty set.
    """
    try:
        if raw is None or raw == "":
            return frozenset()
        values = raw
        if isinstance(values, (bytes, bytearray)):
            values = values.decode("utf-8")
        if isinstance(values, str):
            try:
                values = json.loads(values)
            except json.JSONDecodeError:
                values = [part for part in values.split(",") if part.strip()]
        if isinstance(values, (str, int, float)) or values is None:
            values = [values]
        if isinstance(values, Mapping):
            logger.warning("Ignoring mapping given as allowed_condominiums: %r", raw)
            return frozenset()
        ids = (_coerce_condominium_id(v) for v in values)
        return frozenset(i for i in ids if i is not None)
    except Exception as e:
        logger.warning("Could not parse allowed_condominiums %r: %s", raw, e)
        return frozenset()


def resolve_scope(scope: Any, allowed_condominiums: Any = None) -> AccessScope:
    """
    "full" wins over any allow-list, even a malformed one.
    Every other scope value is limited to the normalized allow-list.
    """
    if isinstance(scope, AdminScope):
        scope = scope.value
    if isinstance(scope, str) and scope.strip().lower() == AdminScope.FULL.value:
        return FullAccess()
    return LimitedAccess(normalize_allowed_condominiums(allowed_condominiums))


def scope_for_admin(admin: Any) -> AccessScope:
    return resolve_scope(
        getattr(admin, "scope", None),
        getattr(admin, "allowed_condominiums", None),
    )


def parse_permission_descriptor(raw: Any) -> Optional[AccessScope]:
    """
    Parse the ``admin-permissions`` header value.

    Returns None when no descriptor was supplied at all, so that each caller
    decides what absence means. A descriptor that is present but unreadable
    degrades to no access.
    """
    if raw is None:
        return None
    if isinstance(raw, str) and not raw.strip():
        return None
    try:
        parsed = json.loads(raw) if isinstance(raw, (str, bytes, bytearray)) else raw
    except json.JSONDecodeError as e:
        logger.warning("Malformed admin permissions descriptor %r: %s", raw, e)
        return NO_ACCESS
    if not isinstance(parsed, Mapping):
        logger.warning("Admin permissions descriptor is not an object: %r", raw)
        return NO_ACCESS
    allowed = parsed.get("allowed_condominiums", parsed.get("allowedCondos"))
    return resolve_scope(parsed.get("scope"), allowed)


def narrow_scope(base: AccessScope, other: Optional[AccessScope]) -> AccessScope:
    """
    Intersection of two scopes. ``other`` may only take access away: a
    descriptor sent by the client never widens what the stored account allows.
    """
    if other is None or isinstance(other, FullAccess):
        return base
    if isinstance(base, FullAccess):
        return other
    return LimitedAccess(base.condominium_ids & other.condominium_ids)
