# Sub-row stacking inside a lane, and the pixel geometry of a whole board.
# Stateless: every render rebuilds the geometry from the model.

from __future__ import annotations
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence
from dataclasses import dataclass, field
import datetime as dt

from board_model import (
    BoardModel, LaneRef, ScheduledItem,
    CAT_EFFICIENCY, CAT_PENDING, CAT_SAFETY, CAT_VACATION,
)
from calendar_map import CalendarRange


class Rect(NamedTuple):
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    @property
    def mid_y(self) -> float:
        return self.y + self.h / 2.0

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.w and self.y <= py < self.y + self.h

    def translated(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.w, self.h)


@dataclass(frozen=True)
class LaneLayout:
    rows: Dict[int, int]  # item id -> sub-row index
    count: int


def assign_sub_rows(items: Iterable[ScheduledItem]) -> LaneLayout:
    """Greedy interval colouring.

    Items are taken in start-date order (stable, so ties keep input order) and
    each goes to the first sub-row whose last end date is strictly before its
    start. The row count equals the largest number of items overlapping on a
    single day.
    """
    ordered = sorted(items, key=lambda it: it.start_date)
    row_end: List[dt.date] = []
    rows: Dict[int, int] = {}
    for it in ordered:
        for idx, end in enumerate(row_end):
            if end < it.start_date:
                rows[it.id] = idx
                row_end[idx] = it.end_date
                break
        else:
            rows[it.id] = len(row_end)
            row_end.append(it.end_date)
    return LaneLayout(rows=rows, count=len(row_end))


def single_row(items: Iterable[ScheduledItem]) -> LaneLayout:
    return LaneLayout(rows={it.id: 0 for it in items}, count=1)


def is_stacked(lane: LaneRef) -> bool:
    # numbered terminals hold one item at a time; everything else stacks
    return lane.category != CAT_EFFICIENCY


def layout_lane(lane: LaneRef, items: Sequence[ScheduledItem]) -> LaneLayout:
    if not is_stacked(lane):
        return single_row(items)
    return assign_sub_rows(items)


def row_height_for(lane: LaneRef, prefs) -> int:
    if lane.category == CAT_SAFETY:
        return int(prefs.safety_row_height)
    if lane.category == CAT_VACATION:
        return int(prefs.vacation_row_height)
    if lane.category == CAT_PENDING:
        return int(prefs.pending_row_height)
    return int(prefs.terminal_row_height)


def lane_height(sub_row_count: int, row_height: int, row_margin: int) -> int:
    count = max(1, int(sub_row_count))
    return count * (row_height + row_margin) + row_margin


@dataclass(frozen=True)
class LaneBand:
    lane: LaneRef
    name: str
    top: float
    height: float
    row_height: int
    sub_rows: int

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains_y(self, y: float) -> bool:
        return self.top <= y < self.top + self.height


@dataclass
class BoardGeometry:
    cal_range: CalendarRange
    cell_width: float
    origin_x: float
    origin_y: float
    bands: List[LaneBand] = field(default_factory=list)
    item_rects: Dict[int, Rect] = field(default_factory=dict)
    overlay_rects: Dict[int, Rect] = field(default_factory=dict)
    sub_rows: Dict[int, int] = field(default_factory=dict)

    @property
    def width(self) -> float:
        return self.origin_x + self.cal_range.days * self.cell_width

    @property
    def height(self) -> float:
        return self.bands[-1].bottom if self.bands else self.origin_y

    def column_x(self, column: int) -> float:
        return self.origin_x + column * self.cell_width

    def date_span_rect(self, start: dt.date, end: dt.date, top: float, height: float) -> Rect:
        col = self.cal_range.column_of(start)
        days = (end - start).days + 1
        return Rect(self.column_x(col), top, days * self.cell_width, height)

    def band_for(self, lane: LaneRef) -> Optional[LaneBand]:
        for b in self.bands:
            if b.lane == lane:
                return b
        return None

    def lane_at(self, y: float) -> Optional[LaneBand]:
        for b in self.bands:
            if b.contains_y(y):
                return b
        return None

    def rect_of(self, item_id: int) -> Optional[Rect]:
        return self.item_rects.get(item_id) or self.overlay_rects.get(item_id)

    def item_at(self, x: float, y: float, exclude: Optional[int] = None) -> Optional[int]:
        # lane items first; calibration overlays only catch what falls between them.
        # Within a pool, later rects are painted on top, so search newest first.
        for pool in (self.item_rects, self.overlay_rects):
            for item_id, r in reversed(list(pool.items())):
                if item_id != exclude and r.contains(x, y):
                    return item_id
        return None


def build_geometry(model: BoardModel, prefs, cal_range: CalendarRange) -> BoardGeometry:
    geo = BoardGeometry(
        cal_range=cal_range,
        cell_width=float(prefs.cell_width),
        origin_x=float(prefs.label_width),
        origin_y=float(prefs.header_height),
    )
    margin = int(prefs.row_margin)
    y = geo.origin_y
    for lane in model.lanes():
        items = model.items_in_lane(lane)
        layout = layout_lane(lane, items)
        rh = row_height_for(lane, prefs)
        h = lane_height(layout.count, rh, margin)
        geo.bands.append(LaneBand(lane, model.lane_name(lane), y, h, rh, max(1, layout.count)))
        for it in items:
            row = layout.rows[it.id]
            geo.sub_rows[it.id] = row
            top = y + margin + row * (rh + margin)
            geo.item_rects[it.id] = geo.date_span_rect(it.start_date, it.end_date, top, rh)
        y += h

    for cal in model.calibrations:
        bands = [b for b in (geo.band_for(ref) for ref in model.calibration_lanes(cal)) if b is not None]
        if not bands:
            continue
        top = min(b.top for b in bands)
        bottom = max(b.bottom for b in bands)
        geo.overlay_rects[cal.id] = geo.date_span_rect(cal.start_date, cal.end_date, top, bottom - top)
    return geo


def max_overlap(items: Sequence[ScheduledItem]) -> int:
    """Largest number of items sharing a single day (sweep over start/end events)."""
    events = []
    for it in items:
        events.append((it.start_date, 0))
        events.append((it.end_date + dt.timedelta(days=1), -1))
    # ends sort before starts on the same day: an item ending the day before frees its slot
    events.sort(key=lambda e: (e[0], e[1]))
    best = cur = 0
    for _, kind in events:
        cur += 1 if kind == 0 else -1
        best = max(best, cur)
    return best
