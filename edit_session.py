# Transactional wrapper around the board: every mutation snapshots first,
# undo rewinds through a bounded stack, commit/discard move the baseline.

from __future__ import annotations
from typing import Any, Callable, Deque, Iterator, List, Optional, Tuple
from collections import deque
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import replace
import datetime as dt
import logging

from board_model import (
    Assay, BoardModel, EfficiencyAssay, EfficiencyTerminal, Holiday, LaneRef, SafetyAssay,
    SafetyResponsible, ScheduledItem,
    CAT_EFFICIENCY, CAT_PENDING, CAT_SAFETY, CAT_VACATION, STATUS_PENDING,
)
from errors import (
    DropResolutionFailed, InvalidDateRange, LaneInUse, ProtectedLane, UndoStackEmpty,
    UnknownItem, UnknownLane,
)
import status_rules

logger = logging.getLogger(__name__)

UNDO_DEPTH = 10

# listener events
EV_CHANGED = "changed"
EV_UNDONE = "undone"
EV_COMMITTED = "committed"
EV_DISCARDED = "discarded"
EV_COMMIT_FAILED = "commit-failed"

Listener = Callable[[str], None]


def _immediate(fn: Callable[[], None]):
    fn()


def check_dates(start: dt.date, end: dt.date):
    if end < start:
        raise InvalidDateRange(start, end)


class EditSession:
    """Owns the live board between load and save.

    `store` is the persistence collaborator (`load()` / `commit(model)`).
    `dispatch` schedules the commit call; the default runs it inline, the
    desktop app hands it to the event loop so saving never blocks editing.
    """

    def __init__(self, store, undo_depth: int = UNDO_DEPTH,
                 dispatch: Callable[[Callable[[], None]], Any] = _immediate):
        self.store = store
        self.dispatch = dispatch
        self.undo_depth = max(1, int(undo_depth))
        self._undo: Deque[Tuple[str, BoardModel]] = deque(maxlen=self.undo_depth)
        self._listeners: List[Listener] = []
        self.baseline: BoardModel = store.load()
        self.current: BoardModel = deepcopy(self.baseline)
        self.dirty = False
        self.last_error: Optional[BaseException] = None
        logger.debug("Session started with %d items", len(self.current.all_items()))

    # --- listeners ---
    def add_listener(self, callback: Listener):
        self._listeners.append(callback)

    def remove_listener(self, callback: Listener):
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self, event: str):
        for cb in list(self._listeners):
            cb(event)

    # --- history ---
    def can_undo(self) -> bool:
        return bool(self._undo)

    def history(self) -> List[str]:
        return [label for label, _ in self._undo]

    @contextmanager
    def _mutation(self, label: str) -> Iterator[BoardModel]:
        before = deepcopy(self.current)
        try:
            yield self.current
        except Exception:
            self.current = before
            raise
        self._undo.append((label, before))  # deque maxlen evicts the oldest
        self.dirty = True
        logger.debug("Applied: %s", label)
        self._notify(EV_CHANGED)

    def undo(self, steps: int = 1) -> str:
        """Rewind `steps` mutations (at most what the stack holds), notifying once.

        Returns the label of the earliest mutation undone.
        """
        if not self._undo:
            raise UndoStackEmpty("Nothing to undo")
        steps = max(1, min(int(steps), len(self._undo)))
        for _ in range(steps):
            label, snapshot = self._undo.pop()
        self.current = snapshot
        self.dirty = self.current != self.baseline
        logger.debug("Undid %d step(s), back to before: %s", steps, label)
        self._notify(EV_UNDONE)
        return label

    # --- save / cancel ---
    def commit(self):
        self.baseline = deepcopy(self.current)
        self.dirty = False
        snapshot = deepcopy(self.current)

        def _persist():
            try:
                self.store.commit(snapshot)
            except Exception as e:
                self.last_error = e
                logger.error("Saving the board failed: %s", e)
                self._notify(EV_COMMIT_FAILED)
            else:
                self.last_error = None

        self.dispatch(_persist)
        self._notify(EV_COMMITTED)

    def discard(self):
        self.current = deepcopy(self.baseline)
        self.dirty = False
        self._notify(EV_DISCARDED)

    # --- lookups ---
    def item(self, item_id: int) -> ScheduledItem:
        it = self.current.find_item(item_id)
        if it is None:
            raise UnknownItem(f"No item with id {item_id}")
        return it

    def _require_lane(self, ref: LaneRef):
        if not self.current.has_lane(ref):
            raise UnknownLane(f"No lane {ref}")

    def _require_assigned_lane(self, item: ScheduledItem):
        # an efficiency assay may have no lane (Pending); otherwise the lane must exist
        if isinstance(item, EfficiencyAssay) and item.lane_id is not None:
            self._require_lane(LaneRef(CAT_EFFICIENCY, item.lane_id))
        elif isinstance(item, SafetyAssay):
            self._require_lane(LaneRef(CAT_SAFETY, item.lane_id))

    def _coerce_lane_status(self, item: ScheduledItem) -> ScheduledItem:
        # pending <-> lane-bound only follows the lane, never a status request
        if not isinstance(item, Assay):
            return item
        lane = self.current.lane_of(item)
        if item.status == STATUS_PENDING or lane.category == CAT_PENDING:
            status = status_rules.status_for_lane(item, lane)
            if status != item.status:
                return replace(item, status=status)
        return item

    # --- items ---
    def add_item(self, item: ScheduledItem) -> ScheduledItem:
        check_dates(item.start_date, item.end_date)
        self._require_assigned_lane(item)
        if not item.id or self.current.find_item(item.id) is not None:
            item = replace(item, id=self.current.next_item_id())
        item = self._coerce_lane_status(item)
        with self._mutation(f"Add {item.kind}") as model:
            model.collection_for(item).append(item)
        return item

    def edit_item(self, item_id: int, **changes) -> ScheduledItem:
        old = self.item(item_id)
        if "id" in changes and changes["id"] != old.id:
            raise ValueError("Item ids are immutable")
        changes.pop("id", None)
        status = changes.pop("status", None)
        new = replace(old, **changes)
        check_dates(new.start_date, new.end_date)
        if "lane_id" in changes:
            self._require_assigned_lane(new)
        new = self._coerce_lane_status(new)
        if status is not None and status != new.status:
            lane = self.current.lane_of(new)
            status_rules.check_transition(new, status, has_lane=lane is not None and lane.category != CAT_PENDING)
            new = replace(new, status=status)
        if new == old:
            return old
        with self._mutation(f"Edit {old.kind}") as model:
            model.replace_item(old, new)
        return new

    def delete_item(self, item_id: int):
        old = self.item(item_id)
        with self._mutation(f"Delete {old.kind}") as model:
            model.collection_for(old).remove(old)

    def set_status(self, item_id: int, status: str) -> ScheduledItem:
        old = self.item(item_id)
        lane = self.current.lane_of(old)
        has_lane = lane is not None and lane.category != CAT_PENDING
        if not status_rules.check_transition(old, status, has_lane=has_lane):
            return old
        new = replace(old, status=status)
        with self._mutation(f"Status {status}") as model:
            model.replace_item(old, new)
        return new

    def move_item(self, item_id: int, new_start: dt.date, lane: Optional[LaneRef] = None) -> ScheduledItem:
        """Shift an item to `new_start` keeping its duration, optionally into `lane`.

        Moving an assay between a terminal and a safety lane moves it between
        the efficiency and safety collections; Pending clears its lane.
        """
        old = self.item(item_id)
        new_end = new_start + (old.end_date - old.start_date)
        new: ScheduledItem = replace(old, start_date=new_start, end_date=new_end)
        if lane is not None and isinstance(old, Assay):
            if not status_rules.can_occupy(old, lane):
                raise DropResolutionFailed(f"{old.kind} items cannot go to {lane}")
            self._require_lane(lane)
            if lane.category == CAT_EFFICIENCY:
                new = new.as_efficiency(int(lane.id))
            elif lane.category == CAT_SAFETY:
                new = new.as_safety(str(lane.id))
            else:  # Pending
                new = new.as_efficiency(None)
            new = replace(new, status=status_rules.status_for_lane(new, lane))
        elif lane is not None and not status_rules.can_occupy(old, lane):
            raise DropResolutionFailed(f"{old.kind} items cannot go to {lane}")
        if new == old:
            return old
        with self._mutation(f"Move {old.kind}") as model:
            model.replace_item(old, new)
        return new

    def swap_items(self, first_id: int, second_id: int):
        a = self.item(first_id)
        b = self.item(second_id)
        if not status_rules.swap_compatible(a, b):
            raise ValueError(f"Cannot swap {a.kind} with {b.kind}")
        with self._mutation("Swap items") as model:
            model.replace_item(a, replace(a, start_date=b.start_date, end_date=b.end_date))
            model.replace_item(b, replace(b, start_date=a.start_date, end_date=a.end_date))

    # --- lanes ---
    def add_lane(self, category: str, name: str, lane_id: Any = None) -> LaneRef:
        name = (name or "").strip()
        if category == CAT_EFFICIENCY:
            lane_id = int(lane_id) if lane_id is not None else self.current.next_efficiency_lane_id()
            record: Any = EfficiencyTerminal(lane_id, name or f"Terminal {lane_id}")
        elif category == CAT_SAFETY:
            lane_id = str(lane_id).strip().upper() if lane_id else self.current.next_safety_lane_code()
            record = SafetyResponsible(lane_id, name or f"Responsible {lane_id}")
        else:
            raise ProtectedLane(f"Cannot add {category} lanes")
        if self.current.has_lane(record.ref):
            raise ValueError(f"Lane {record.ref} already exists")
        with self._mutation("Add lane") as model:
            if category == CAT_EFFICIENCY:
                model.efficiency_lanes.append(record)
            else:
                model.safety_lanes.append(record)
        return record.ref

    def rename_lane(self, ref: LaneRef, name: str):
        if ref.category in (CAT_VACATION, CAT_PENDING):
            raise ProtectedLane(f"{ref} cannot be renamed")
        lane = self.current.lane_record(ref)
        if lane is None:
            raise UnknownLane(f"No lane {ref}")
        if lane.name == name:
            return
        with self._mutation("Rename lane"):
            lane.name = name

    def delete_lane(self, ref: LaneRef):
        if ref.category in (CAT_VACATION, CAT_PENDING):
            raise ProtectedLane(f"{ref} cannot be deleted")
        lane = self.current.lane_record(ref)
        if lane is None:
            raise UnknownLane(f"No lane {ref}")
        users = self.current.lane_references(ref)
        if users:
            logger.warning("Refusing to delete lane %s: %d item(s) use it", ref, len(users))
            raise LaneInUse(ref, len(users))
        with self._mutation("Delete lane") as model:
            pool = model.efficiency_lanes if ref.category == CAT_EFFICIENCY else model.safety_lanes
            pool.remove(lane)

    # --- holidays ---
    def add_holiday(self, name: str, start: dt.date, end: dt.date) -> Holiday:
        check_dates(start, end)
        h = Holiday(self.current.next_item_id(), name, start, end)
        with self._mutation("Add holiday") as model:
            model.holidays.append(h)
        return h

    def delete_holiday(self, holiday_id: int):
        h = next((x for x in self.current.holidays if x.id == holiday_id), None)
        if h is None:
            raise UnknownItem(f"No holiday with id {holiday_id}")
        with self._mutation("Delete holiday") as model:
            model.holidays.remove(h)
