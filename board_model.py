# Board data: scheduled items (one dataclass per kind), lanes and the
# BoardModel aggregate that the edit session owns.

from __future__ import annotations
from typing import Any, ClassVar, Dict, List, NamedTuple, Optional
from dataclasses import dataclass, field, fields
import datetime as dt
import time

from calendar_map import format_date, parse_date

# Lane categories
CAT_EFFICIENCY = "efficiency"
CAT_SAFETY = "safety"
CAT_VACATION = "vacation"
CAT_PENDING = "pending"

# Assay statuses
STATUS_PENDING = "pending"
STATUS_AWAITING = "awaiting"
STATUS_SAMPLE_RECEIVED = "sample-received"
STATUS_IN_PROGRESS = "in-progress"
STATUS_COMPLETED = "completed"
STATUS_INCOMPLETE = "incomplete"
STATUS_REPORT_ISSUED = "report-issued"
ASSAY_STATUSES = (
    STATUS_PENDING, STATUS_AWAITING, STATUS_SAMPLE_RECEIVED, STATUS_IN_PROGRESS,
    STATUS_COMPLETED, STATUS_INCOMPLETE, STATUS_REPORT_ISSUED,
)
# Nominal statuses (colour only)
STATUS_CALIBRATION = "calibration"
STATUS_VACATION = "vacation"

SCOPE_ENERGY_1_4 = "energy-1-4"
SCOPE_ENERGY_5_8 = "energy-5-8"
SCOPE_ALL = "all"
CALIBRATION_SCOPES = (SCOPE_ENERGY_1_4, SCOPE_ENERGY_5_8, SCOPE_ALL)

DEFAULT_TERMINAL_COUNT = 8


class LaneRef(NamedTuple):
    category: str
    id: Any = None

    def __str__(self) -> str:
        if self.id is None:
            return self.category.capitalize()
        return f"{self.category}:{self.id}"


VACATION_LANE = LaneRef(CAT_VACATION)
PENDING_LANE = LaneRef(CAT_PENDING)


@dataclass
class EfficiencyTerminal:
    id: int
    name: str

    @property
    def ref(self) -> LaneRef:
        return LaneRef(CAT_EFFICIENCY, self.id)


@dataclass
class SafetyResponsible:
    id: str
    name: str

    @property
    def ref(self) -> LaneRef:
        return LaneRef(CAT_SAFETY, self.id)


@dataclass
class ScheduledItem:
    id: int
    start_date: dt.date
    end_date: dt.date
    status: str = ""

    kind: ClassVar[str] = ""
    draggable: ClassVar[bool] = True

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    def overlaps(self, other: "ScheduledItem") -> bool:
        return self.start_date <= other.end_date and other.start_date <= self.end_date

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "start_date": format_date(self.start_date),
            "end_date": format_date(self.end_date),
            "status": self.status,
        }


@dataclass
class Assay(ScheduledItem):
    protocol: str = ""
    budget: str = ""
    manufacturer: str = ""
    model: str = ""
    nominal_load: float = 0.0
    voltage: str = ""
    cycles: int = 0
    notes: str = ""
    report_date: Optional[dt.date] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def _shared_fields(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(Assay)}

    def as_efficiency(self, lane_id: Optional[int]) -> "EfficiencyAssay":
        return EfficiencyAssay(**self._shared_fields(), lane_id=lane_id)

    def as_safety(self, lane_id: str) -> "SafetyAssay":
        return SafetyAssay(**self._shared_fields(), lane_id=lane_id)

    def to_dict(self) -> Dict[str, Any]:
        d = self._base_dict()
        d.update({
            "lane_id": getattr(self, "lane_id", None),
            "protocol": self.protocol, "budget": self.budget,
            "manufacturer": self.manufacturer, "model": self.model,
            "nominal_load": self.nominal_load, "voltage": self.voltage,
            "cycles": self.cycles, "notes": self.notes,
            "report_date": format_date(self.report_date) if self.report_date else "",
            "extra": dict(self.extra),
        })
        return d


@dataclass
class EfficiencyAssay(Assay):
    lane_id: Optional[int] = None

    kind: ClassVar[str] = CAT_EFFICIENCY

    def __post_init__(self):
        if not self.status:
            self.status = STATUS_PENDING if self.lane_id is None else STATUS_AWAITING


@dataclass
class SafetyAssay(Assay):
    lane_id: str = ""

    kind: ClassVar[str] = CAT_SAFETY

    def __post_init__(self):
        if not self.status:
            self.status = STATUS_AWAITING


@dataclass
class CalibrationEvent(ScheduledItem):
    protocol: str = ""
    scope: str = SCOPE_ALL

    kind: ClassVar[str] = "calibration"

    def __post_init__(self):
        if not self.status:
            self.status = STATUS_CALIBRATION

    @property
    def lane_id(self) -> None:
        return None

    def to_dict(self) -> Dict[str, Any]:
        d = self._base_dict()
        d.update({"protocol": self.protocol, "scope": self.scope})
        return d


@dataclass
class VacationEvent(ScheduledItem):
    person: str = ""

    kind: ClassVar[str] = CAT_VACATION
    draggable: ClassVar[bool] = False

    def __post_init__(self):
        if not self.status:
            self.status = STATUS_VACATION

    @property
    def lane_id(self) -> None:
        return None

    def to_dict(self) -> Dict[str, Any]:
        d = self._base_dict()
        d["person"] = self.person
        return d


@dataclass
class Holiday:
    id: int
    name: str
    start_date: dt.date
    end_date: dt.date

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name,
                "start_date": format_date(self.start_date),
                "end_date": format_date(self.end_date)}


def _opt_date(raw) -> Optional[dt.date]:
    if not raw:
        return None
    return parse_date(raw)


def _assay_kwargs(d: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": int(d["id"]),
        "start_date": parse_date(d["start_date"]),
        "end_date": parse_date(d["end_date"]),
        "status": d.get("status", "") or "",
        "protocol": d.get("protocol", "") or "",
        "budget": d.get("budget", "") or "",
        "manufacturer": d.get("manufacturer", "") or "",
        "model": d.get("model", "") or "",
        "nominal_load": float(d.get("nominal_load", 0) or 0),
        "voltage": d.get("voltage", "") or "",
        "cycles": int(d.get("cycles", 0) or 0),
        "notes": d.get("notes", "") or "",
        "report_date": _opt_date(d.get("report_date")),
        "extra": dict(d.get("extra") or {}),
    }


def item_from_dict(d: Dict[str, Any]) -> ScheduledItem:
    kind = d.get("kind")
    if kind == CAT_EFFICIENCY:
        lane = d.get("lane_id")
        try:
            lane_id = int(lane) if lane not in (None, "") else None
        except (TypeError, ValueError):
            lane_id = None  # unreadable lane -> Pending
        return EfficiencyAssay(**_assay_kwargs(d), lane_id=lane_id)
    if kind == CAT_SAFETY:
        return SafetyAssay(**_assay_kwargs(d), lane_id=str(d.get("lane_id") or ""))
    if kind == "calibration":
        return CalibrationEvent(
            id=int(d["id"]), start_date=parse_date(d["start_date"]),
            end_date=parse_date(d["end_date"]), status=d.get("status", "") or "",
            protocol=d.get("protocol", "") or "", scope=d.get("scope") or SCOPE_ALL,
        )
    if kind == CAT_VACATION:
        return VacationEvent(
            id=int(d["id"]), start_date=parse_date(d["start_date"]),
            end_date=parse_date(d["end_date"]), status=d.get("status", "") or "",
            person=d.get("person", "") or "",
        )
    raise ValueError(f"Unknown item kind: {kind!r}")


@dataclass
class BoardModel:
    efficiency: List[EfficiencyAssay] = field(default_factory=list)
    safety: List[SafetyAssay] = field(default_factory=list)
    calibrations: List[CalibrationEvent] = field(default_factory=list)
    vacations: List[VacationEvent] = field(default_factory=list)
    holidays: List[Holiday] = field(default_factory=list)
    efficiency_lanes: List[EfficiencyTerminal] = field(default_factory=list)
    safety_lanes: List[SafetyResponsible] = field(default_factory=list)

    @classmethod
    def with_default_lanes(cls) -> "BoardModel":
        return cls(
            efficiency_lanes=[EfficiencyTerminal(i, f"Terminal {i}")
                              for i in range(1, DEFAULT_TERMINAL_COUNT + 1)],
            safety_lanes=[SafetyResponsible("A", "Responsible A"),
                          SafetyResponsible("B", "Responsible B")],
        )

    # --- items ---
    def collection_for(self, item: ScheduledItem) -> list:
        if isinstance(item, EfficiencyAssay):
            return self.efficiency
        if isinstance(item, SafetyAssay):
            return self.safety
        if isinstance(item, CalibrationEvent):
            return self.calibrations
        if isinstance(item, VacationEvent):
            return self.vacations
        raise TypeError(f"Not a scheduled item: {item!r}")

    def all_items(self) -> List[ScheduledItem]:
        return [*self.efficiency, *self.safety, *self.calibrations, *self.vacations]

    def find_item(self, item_id: int) -> Optional[ScheduledItem]:
        for it in self.all_items():
            if it.id == item_id:
                return it
        return None

    def replace_item(self, old: ScheduledItem, new: ScheduledItem):
        """Swap `old` for `new`, moving between collections when the kind changed."""
        src = self.collection_for(old)
        dst = self.collection_for(new)
        idx = next(i for i, it in enumerate(src) if it is old)
        if src is dst:
            src[idx] = new
        else:
            del src[idx]
            dst.append(new)

    def next_item_id(self, now_ms: Optional[int] = None) -> int:
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        ids = [it.id for it in self.all_items()] + [h.id for h in self.holidays]
        return max([now_ms] + [i + 1 for i in ids])

    # --- lanes ---
    def lanes(self) -> List[LaneRef]:
        """Display order: terminals, safety responsibles, Vacation, Pending."""
        refs = [t.ref for t in self.efficiency_lanes]
        refs += [s.ref for s in self.safety_lanes]
        refs += [VACATION_LANE, PENDING_LANE]
        return refs

    def has_lane(self, ref: LaneRef) -> bool:
        if ref.category in (CAT_VACATION, CAT_PENDING):
            return True
        return self.lane_record(ref) is not None

    def lane_record(self, ref: LaneRef):
        if ref.category == CAT_EFFICIENCY:
            pool = self.efficiency_lanes
        elif ref.category == CAT_SAFETY:
            pool = self.safety_lanes
        else:
            return None
        for lane in pool:
            if lane.id == ref.id:
                return lane
        return None

    def lane_name(self, ref: LaneRef) -> str:
        if ref.category == CAT_VACATION:
            return "Vacation"
        if ref.category == CAT_PENDING:
            return "Pending"
        lane = self.lane_record(ref)
        return lane.name if lane is not None else str(ref)

    def lane_of(self, item: ScheduledItem) -> Optional[LaneRef]:
        """Lane an item renders in; calibrations span several lanes and return None."""
        if isinstance(item, EfficiencyAssay):
            ref = LaneRef(CAT_EFFICIENCY, item.lane_id)
            if item.lane_id is not None and self.lane_record(ref) is not None:
                return ref
            return PENDING_LANE
        if isinstance(item, SafetyAssay):
            ref = LaneRef(CAT_SAFETY, item.lane_id)
            return ref if self.lane_record(ref) is not None else PENDING_LANE
        if isinstance(item, VacationEvent):
            return VACATION_LANE
        if isinstance(item, CalibrationEvent):
            return None
        raise TypeError(f"Not a scheduled item: {item!r}")

    def items_in_lane(self, ref: LaneRef) -> List[ScheduledItem]:
        return [it for it in self.all_items()
                if not isinstance(it, CalibrationEvent) and self.lane_of(it) == ref]

    def calibration_lanes(self, cal: CalibrationEvent) -> List[LaneRef]:
        if cal.scope == SCOPE_ENERGY_1_4:
            wanted = range(1, 5)
        elif cal.scope == SCOPE_ENERGY_5_8:
            wanted = range(5, 9)
        else:
            return [t.ref for t in self.efficiency_lanes]
        return [t.ref for t in self.efficiency_lanes if t.id in wanted]

    def lane_references(self, ref: LaneRef) -> List[ScheduledItem]:
        if ref.category == CAT_EFFICIENCY:
            refs: List[ScheduledItem] = [a for a in self.efficiency if a.lane_id == ref.id]
            refs += [c for c in self.calibrations if ref in self.calibration_lanes(c)]
            return refs
        if ref.category == CAT_SAFETY:
            return [a for a in self.safety if a.lane_id == ref.id]
        return []

    def next_efficiency_lane_id(self) -> int:
        return max([0] + [t.id for t in self.efficiency_lanes]) + 1

    def next_safety_lane_code(self) -> str:
        used = {s.id for s in self.safety_lanes}
        for code in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
            if code not in used:
                return code
        n = 1
        while f"Z{n}" in used:
            n += 1
        return f"Z{n}"

    # --- serialization ---
    def to_dict(self) -> Dict[str, Any]:
        return {
            "efficiency": [a.to_dict() for a in self.efficiency],
            "safety": [a.to_dict() for a in self.safety],
            "calibrations": [c.to_dict() for c in self.calibrations],
            "vacations": [v.to_dict() for v in self.vacations],
            "holidays": [h.to_dict() for h in self.holidays],
            "efficiency_lanes": [{"id": t.id, "name": t.name} for t in self.efficiency_lanes],
            "safety_lanes": [{"id": s.id, "name": s.name} for s in self.safety_lanes],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BoardModel":
        model = cls(
            efficiency_lanes=[EfficiencyTerminal(int(t["id"]), t.get("name", "")) for t in d.get("efficiency_lanes", [])],
            safety_lanes=[SafetyResponsible(str(s["id"]), s.get("name", "")) for s in d.get("safety_lanes", [])],
        )
        for key in ("efficiency", "safety", "calibrations", "vacations"):
            for raw in d.get(key, []):
                item = item_from_dict(raw)
                model.collection_for(item).append(item)
        for raw in d.get("holidays", []):
            model.holidays.append(Holiday(
                id=int(raw["id"]), name=raw.get("name", ""),
                start_date=parse_date(raw["start_date"]), end_date=parse_date(raw["end_date"]),
            ))
        return model
