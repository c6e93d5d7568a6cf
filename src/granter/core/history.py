"""
Grant lifecycle: applying change events to a definition.

A grant definition is never edited in place. `apply_change` derives the next
version from the current one, appends the change event with a pointer to the
replaced definition (version and content identifier) and moves the status along
the lifecycle.

Lifecycle rules
- A closed grant accepts no change.
- A locked grant (last lock/unlock event is a lock) accepts only an unlock.
- `create` is only valid for the first event of a new definition.
- Status moves forward (draft < submitted < approved < running < halted < closed),
  except halted -> running.
- A `close` event moves the status to closed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .errors import LifecycleError
from .grammar import ChangeType, GrantStatus, can_transition, enum_from_value, enum_value
from .hashing import grant_cid
from .schema import HistoryEvent, ProjectGrant
from .serde import grant_to_tree

logger = logging.getLogger(__name__)

__all__ = [
    "apply_change",
    "is_locked",
    "is_closed",
    "grant_cid",
]

# Top-level keys that only apply_change itself may write.
_RESERVED_KEYS = frozenset({"history", "status"})


def is_closed(grant: ProjectGrant) -> bool:
    """Whether the grant reached its terminal status."""
    return grant.status is GrantStatus.CLOSED


def is_locked(grant: ProjectGrant) -> bool:
    """
    Whether the definition is frozen by a lock event.

    The most recent event carrying `lock` or `unlock` decides; an event carrying
    both counts as an unlock.
    """
    for event in reversed(grant.history.event):
        if ChangeType.UNLOCK in event.type:
            return False
        if ChangeType.LOCK in event.type:
            return True
    return False


def _to_tree(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return grant_to_tree(value)
    if isinstance(value, Enum):
        return enum_value(value)
    if isinstance(value, Mapping):
        return {k: _to_tree(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_to_tree(v) for v in value]
    return value


def _refuse(message: str) -> LifecycleError:
    logger.warning("change refused: %s", message)
    return LifecycleError(message)


def apply_change(
    grant: ProjectGrant,
    event: HistoryEvent | Mapping[str, Any],
    changes: Mapping[str, Any] | None = None,
    status: GrantStatus | str | int | None = None,
) -> ProjectGrant:
    """
    Derive the next version of a grant definition.

    Args:
        grant (ProjectGrant): Current definition; left untouched.
        event (HistoryEvent | Mapping[str, Any]): Change event to record. Its
            `previous` field is overwritten with the replaced version and CID.
        changes (Mapping[str, Any] | None): Top-level field replacements (models,
            enum members and plain values are accepted, also nested
            in mappings and lists).
        status (GrantStatus | str | int | None): Target status, if it changes.

    Returns:
        ProjectGrant: New definition with `history.version` incremented.

    Raises:
        LifecycleError: If the grant is closed or locked, the transition is not
            allowed, the event is a `create`, or `changes` touches history/status.
        pydantic.ValidationError: If the changed definition is not well-formed.
    """
    if not isinstance(event, HistoryEvent):
        event = HistoryEvent.model_validate(dict(event))
    changes = dict(changes or {})

    if is_closed(grant):
        raise _refuse("grant is closed")
    if is_locked(grant) and ChangeType.UNLOCK not in event.type:
        raise _refuse("grant is locked; only an unlock event is accepted")
    if ChangeType.CREATE in event.type:
        raise _refuse("create is only valid for a new definition")
    reserved = sorted(_RESERVED_KEYS.intersection(changes))
    if reserved:
        raise _refuse(f"changes may not replace {', '.join(reserved)}")

    target = grant.status if status is None else enum_from_value(GrantStatus, status)
    if ChangeType.CLOSE in event.type:
        if status is not None and target is not GrantStatus.CLOSED:
            raise _refuse(f"close event conflicts with target status {target.value}")
        target = GrantStatus.CLOSED
    if target is not grant.status and not can_transition(grant.status, target):
        raise _refuse(f"status cannot move from {grant.status.value} to {target.value}")

    version = grant.history.version
    event_tree = grant_to_tree(event)
    event_tree["previous"] = {"version": version, "cid": grant_cid(grant)}

    tree = grant_to_tree(grant)
    tree.update({key: _to_tree(value) for key, value in changes.items()})
    tree["status"] = target.value
    tree["history"] = {
        "version": version + 1,
        "event": [*tree["history"]["event"], event_tree],
    }
    updated = ProjectGrant.model_validate(tree)
    logger.info(
        "applied %s: version %d -> %d, status %s",
        "+".join(t.value for t in event.type),
        version,
        version + 1,
        target.value,
    )
    return updated
