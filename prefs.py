# Board preferences, persisted as an ini file next to the app.

from __future__ import annotations
from typing import Dict
from dataclasses import dataclass, field
from pathlib import Path
import configparser
import logging

logger = logging.getLogger(__name__)

DEFAULT_STATUS_COLORS: Dict[str, str] = {
    "pending": "#9AA0A6",
    "awaiting": "#4879C5",
    "sample-received": "#5AC8FA",
    "in-progress": "#FF9F0A",
    "completed": "#34C759",
    "incomplete": "#FF3B30",
    "report-issued": "#8E8E93",
    "calibration": "#AF52DE",
    "vacation": "#C7A46B",
}


@dataclass
class BoardPrefs:
    # Grid geometry
    cell_width: int = 25
    header_height: int = 40
    label_width: int = 160
    terminal_row_height: int = 28
    safety_row_height: int = 18
    vacation_row_height: int = 18
    pending_row_height: int = 32
    row_margin: int = 3
    # Visible range padding (days)
    lead_days: int = 30
    trail_days: int = 60
    empty_before_days: int = 7
    empty_after_days: int = 21
    # Session
    undo_depth: int = 10
    # Colors
    status_colors: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STATUS_COLORS))
    grid_line: str = "#DCE0E6"
    holiday_fill: str = "#FDECEC"
    weekend_fill: str = "#F3F5FA"
    lane_label_text: str = "#3C4043"

    def status_color(self, status: str) -> str:
        return self.status_colors.get(status, "#4879C5")

    def as_layout_dict(self) -> Dict[str, str]:
        return {
            "cell_width": str(int(self.cell_width)),
            "header_height": str(int(self.header_height)),
            "label_width": str(int(self.label_width)),
            "terminal_row_height": str(int(self.terminal_row_height)),
            "safety_row_height": str(int(self.safety_row_height)),
            "vacation_row_height": str(int(self.vacation_row_height)),
            "pending_row_height": str(int(self.pending_row_height)),
            "row_margin": str(int(self.row_margin)),
        }

    def as_range_dict(self) -> Dict[str, str]:
        return {
            "lead_days": str(int(self.lead_days)),
            "trail_days": str(int(self.trail_days)),
            "empty_before_days": str(int(self.empty_before_days)),
            "empty_after_days": str(int(self.empty_after_days)),
        }

    def as_color_dict(self) -> Dict[str, str]:
        d = {f"status.{k}": v for k, v in self.status_colors.items()}
        d.update({
            "grid_line": self.grid_line,
            "holiday_fill": self.holiday_fill,
            "weekend_fill": self.weekend_fill,
            "lane_label_text": self.lane_label_text,
        })
        return d

    @classmethod
    def from_config(cls, path: Path) -> "BoardPrefs":
        cfg = configparser.ConfigParser()
        if not path.exists():
            p = cls()
            try:
                p.save(path)
            except OSError as e:
                logger.warning("Could not write default preferences to %s: %s", path, e)
            return p
        cfg.read(path, encoding="utf-8")
        layout = cfg["layout"] if "layout" in cfg else {}
        rng = cfg["range"] if "range" in cfg else {}
        session = cfg["session"] if "session" in cfg else {}
        colors = cfg["colors"] if "colors" in cfg else {}

        def get_int(sec, key: str, default: int, lo: int = 0, hi: int = 10_000) -> int:
            try:
                return max(lo, min(hi, int(sec.get(key, str(default)))))
            except ValueError:
                logger.warning("Bad value for %s in %s; using %s", key, path, default)
                return default

        def get_color(key: str, default: str) -> str:
            raw = (colors.get(key, default) or "").strip()
            return raw if raw.startswith("#") and len(raw) in (4, 7, 9) else default

        status_colors = {k: get_color(f"status.{k}", v) for k, v in DEFAULT_STATUS_COLORS.items()}
        return cls(
            cell_width=get_int(layout, "cell_width", 25, 4, 200),
            header_height=get_int(layout, "header_height", 40, 16, 200),
            label_width=get_int(layout, "label_width", 160, 40, 600),
            terminal_row_height=get_int(layout, "terminal_row_height", 28, 8, 200),
            safety_row_height=get_int(layout, "safety_row_height", 18, 8, 200),
            vacation_row_height=get_int(layout, "vacation_row_height", 18, 8, 200),
            pending_row_height=get_int(layout, "pending_row_height", 32, 8, 200),
            row_margin=get_int(layout, "row_margin", 3, 0, 50),
            lead_days=get_int(rng, "lead_days", 30),
            trail_days=get_int(rng, "trail_days", 60),
            empty_before_days=get_int(rng, "empty_before_days", 7),
            empty_after_days=get_int(rng, "empty_after_days", 21),
            undo_depth=get_int(session, "undo_depth", 10, 1, 1000),
            status_colors=status_colors,
            grid_line=get_color("grid_line", "#DCE0E6"),
            holiday_fill=get_color("holiday_fill", "#FDECEC"),
            weekend_fill=get_color("weekend_fill", "#F3F5FA"),
            lane_label_text=get_color("lane_label_text", "#3C4043"),
        )

    def save(self, path: Path):
        cfg = configparser.ConfigParser()
        cfg["layout"] = self.as_layout_dict()
        cfg["range"] = self.as_range_dict()
        cfg["session"] = {"undo_depth": str(int(self.undo_depth))}
        cfg["colors"] = self.as_color_dict()
        with path.open("w", encoding="utf-8") as f:
            cfg.write(f)
