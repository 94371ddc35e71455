# Pointer drag/drop: pick an item up, float it, and on release turn the
# drop position back into dates and a lane (or swap with the item below).

from __future__ import annotations
from typing import Callable, NamedTuple, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum
import datetime as dt
import logging

from board_model import LaneRef, ScheduledItem
from calendar_map import column_to_date, pixel_to_column
from edit_session import EV_DISCARDED, EV_UNDONE, EditSession
from errors import DropResolutionFailed
from lane_layout import BoardGeometry, LaneBand, Rect
import status_rules

logger = logging.getLogger(__name__)

PRIMARY_BUTTON = 1


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class DropTarget(NamedTuple):
    start_date: dt.date
    lane: LaneRef


def resolve_drop(pointer_position: Tuple[float, float], grid_origin: Tuple[float, float],
                 cell_width: float, lane_bands: Sequence[LaneBand],
                 range_start: dt.date) -> Optional[DropTarget]:
    """Map a dropped element's (left edge x, vertical midpoint y) to a start date and lane.

    Returns None when the midpoint lies above the grid or outside every lane band.
    """
    left_x, mid_y = pointer_position
    origin_x, origin_y = grid_origin
    if mid_y < origin_y:
        return None
    band = next((b for b in lane_bands if b.contains_y(mid_y)), None)
    if band is None:
        return None
    column = pixel_to_column(left_x - origin_x, cell_width)
    return DropTarget(column_to_date(column, range_start), band.lane)


OUTCOME_NONE = "none"
OUTCOME_MOVED = "moved"
OUTCOME_SWAPPED = "swapped"


@dataclass(frozen=True)
class DropOutcome:
    kind: str
    item_id: Optional[int] = None
    other_id: Optional[int] = None
    reason: str = ""

    @property
    def changed(self) -> bool:
        return self.kind != OUTCOME_NONE


class DragController:
    """Idle -> Dragging -> Idle.

    Holds only the dragged item's id and its rectangle at press time. The
    board geometry is fetched fresh from `geometry()` on press and release.
    """

    def __init__(self, session: EditSession, geometry: Callable[[], BoardGeometry]):
        self.session = session
        self._geometry = geometry
        self.state = DragState.IDLE
        self.item_id: Optional[int] = None
        self.floating: Optional[Rect] = None
        self._press: Tuple[float, float] = (0.0, 0.0)
        self._origin_rect: Optional[Rect] = None
        session.add_listener(self._on_session_event)

    @property
    def dragging(self) -> bool:
        return self.state is DragState.DRAGGING

    def _on_session_event(self, event: str):
        if event in (EV_DISCARDED, EV_UNDONE):
            self.abort()

    def _reset(self):
        self.state = DragState.IDLE
        self.item_id = None
        self.floating = None
        self._origin_rect = None

    def abort(self):
        if self.dragging:
            logger.debug("Drag of item %s aborted", self.item_id)
        self._reset()

    def press(self, x: float, y: float, button: int = PRIMARY_BUTTON,
              item_id: Optional[int] = None) -> bool:
        """Start dragging `item_id`, or the topmost item under (x, y) when none is given.

        Front ends that know which element was clicked pass its id, so the
        dragged item is always the one that received the press.
        """
        if button != PRIMARY_BUTTON or self.dragging:
            return False
        geo = self._geometry()
        if item_id is None:
            item_id = geo.item_at(x, y)
        if item_id is None or geo.rect_of(item_id) is None:
            return False
        item = self.session.current.find_item(item_id)
        if item is None or not item.draggable:
            return False
        self.state = DragState.DRAGGING
        self.item_id = item_id
        self._press = (float(x), float(y))
        self._origin_rect = geo.rect_of(item_id)
        self.floating = self._origin_rect
        return True

    def move(self, x: float, y: float) -> Optional[Rect]:
        # visual only: no model access, no layout
        if not self.dragging or self._origin_rect is None:
            return None
        self.floating = self._origin_rect.translated(x - self._press[0], y - self._press[1])
        return self.floating

    def release(self, x: float, y: float) -> DropOutcome:
        if not self.dragging or self.item_id is None:
            return DropOutcome(OUTCOME_NONE, reason="not dragging")
        self.move(x, y)
        item_id = self.item_id
        floating = self.floating
        self._reset()

        dragged = self.session.current.find_item(item_id)
        if dragged is None or floating is None:
            return DropOutcome(OUTCOME_NONE, item_id, reason="item vanished")
        geo = self._geometry()

        target_id = geo.item_at(x, y, exclude=item_id)
        if target_id is not None:
            target = self.session.current.find_item(target_id)
            if target is not None and status_rules.swap_compatible(dragged, target):
                self.session.swap_items(item_id, target_id)
                return DropOutcome(OUTCOME_SWAPPED, item_id, target_id)

        try:
            return self._reposition(dragged, floating, geo)
        except DropResolutionFailed as e:
            logger.debug("Drop of item %s ignored: %s", item_id, e)
            return DropOutcome(OUTCOME_NONE, item_id, reason=str(e))

    def _reposition(self, dragged: ScheduledItem, floating: Rect, geo: BoardGeometry) -> DropOutcome:
        drop = resolve_drop((floating.x, floating.mid_y), (geo.origin_x, geo.origin_y),
                            geo.cell_width, geo.bands, geo.cal_range.start)
        if drop is None:
            raise DropResolutionFailed("dropped outside every lane")
        moved = self.session.move_item(dragged.id, drop.start_date, drop.lane)
        if moved is dragged:
            return DropOutcome(OUTCOME_NONE, dragged.id, reason="unchanged")
        return DropOutcome(OUTCOME_MOVED, dragged.id)
