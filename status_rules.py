# Status lifecycle and lane legality for scheduled items.

from __future__ import annotations
from typing import Dict, FrozenSet, Optional

from board_model import (
    Assay, CalibrationEvent, EfficiencyAssay, LaneRef, SafetyAssay, ScheduledItem, VacationEvent,
    CAT_EFFICIENCY, CAT_PENDING, CAT_SAFETY, CAT_VACATION,
    STATUS_AWAITING, STATUS_COMPLETED, STATUS_INCOMPLETE, STATUS_IN_PROGRESS,
    STATUS_PENDING, STATUS_REPORT_ISSUED, STATUS_SAMPLE_RECEIVED, ASSAY_STATUSES,
)
from errors import InvalidStateTransition

ASSAY_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset({STATUS_AWAITING}),
    STATUS_AWAITING: frozenset({STATUS_SAMPLE_RECEIVED}),
    STATUS_SAMPLE_RECEIVED: frozenset({STATUS_IN_PROGRESS}),
    STATUS_IN_PROGRESS: frozenset({STATUS_COMPLETED, STATUS_INCOMPLETE}),
    STATUS_COMPLETED: frozenset({STATUS_REPORT_ISSUED}),
    STATUS_INCOMPLETE: frozenset({STATUS_REPORT_ISSUED}),
    STATUS_REPORT_ISSUED: frozenset(),
}


def allowed_targets(item: ScheduledItem, has_lane: bool = True) -> FrozenSet[str]:
    if not isinstance(item, Assay):
        return frozenset()
    targets = ASSAY_TRANSITIONS.get(item.status, frozenset())
    if item.status == STATUS_PENDING and not has_lane:
        return frozenset()
    return targets


def check_transition(item: ScheduledItem, target: str, has_lane: bool = True) -> bool:
    """Validate a requested status change.

    Returns False when `target` is already the item's status (nothing to do),
    True when the change is legal, and raises InvalidStateTransition otherwise.
    """
    if isinstance(item, (CalibrationEvent, VacationEvent)):
        if target == item.status:
            return False
        raise InvalidStateTransition(item.status, target, f"{item.kind} items have a fixed status")
    if not isinstance(item, Assay):
        raise TypeError(f"Not a scheduled item: {item!r}")
    if target not in ASSAY_STATUSES:
        raise InvalidStateTransition(item.status, target, "unknown status")
    if target == item.status:
        return False
    if target == STATUS_PENDING:
        raise InvalidStateTransition(item.status, target, "move the item to the Pending lane instead")
    if item.status == STATUS_PENDING and not has_lane:
        raise InvalidStateTransition(item.status, target, "assign a lane first")
    if target not in ASSAY_TRANSITIONS.get(item.status, frozenset()):
        raise InvalidStateTransition(item.status, target)
    return True


def can_occupy(item: ScheduledItem, lane: Optional[LaneRef]) -> bool:
    if lane is None:
        return False
    if isinstance(item, (EfficiencyAssay, SafetyAssay)):
        return lane.category in (CAT_EFFICIENCY, CAT_SAFETY, CAT_PENDING)
    if isinstance(item, VacationEvent):
        return lane.category == CAT_VACATION
    if isinstance(item, CalibrationEvent):
        # only the dates move; the scope keeps its terminal range
        return lane.category == CAT_EFFICIENCY
    return False


def status_for_lane(item: ScheduledItem, lane: LaneRef) -> str:
    if not isinstance(item, Assay):
        return item.status
    if lane.category == CAT_PENDING:
        return STATUS_PENDING
    if item.status == STATUS_PENDING:
        return STATUS_AWAITING
    return item.status


def swap_compatible(a: ScheduledItem, b: ScheduledItem) -> bool:
    if a is b or a.id == b.id:
        return False
    if not (a.draggable and b.draggable):
        return False
    if isinstance(a, Assay) and isinstance(b, Assay):
        return True
    return isinstance(a, CalibrationEvent) and isinstance(b, CalibrationEvent)
