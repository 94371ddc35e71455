# Lab Scheduling Board (PySide6)
# - Gantt-style board of terminals, safety responsibles, Vacation and Pending lanes.
# - Drag items to move them in time or across lanes; drop on another item to swap dates.
# - Edits stay pending until Save; Cancel restores the last saved board; Undo keeps 10 steps.

from __future__ import annotations
from typing import Dict, List, Optional
from pathlib import Path
import datetime as dt
import logging
import sys

from PySide6.QtCore import Qt, QDate, QRect, QSize, QTimer
from PySide6.QtGui import (
    QAction, QBrush, QColor, QFont, QKeySequence, QPainter, QPen, QShortcut
)
from PySide6.QtWidgets import (
    QApplication, QComboBox, QDateEdit, QDialog, QDialogButtonBox, QFormLayout, QHBoxLayout,
    QInputDialog, QLabel, QLineEdit, QListWidget, QListWidgetItem, QMainWindow, QMenu,
    QMessageBox, QPushButton, QScrollArea, QSlider, QSpinBox, QToolBar, QVBoxLayout, QWidget
)

from board_model import (
    Assay, CalibrationEvent, EfficiencyAssay, LaneRef, SafetyAssay, ScheduledItem, VacationEvent,
    CALIBRATION_SCOPES, CAT_EFFICIENCY, CAT_PENDING, CAT_SAFETY,
)
from calendar_map import compute_range
from drag import OUTCOME_MOVED, OUTCOME_SWAPPED, PRIMARY_BUTTON, DragController
from edit_session import (
    EV_COMMIT_FAILED, EV_COMMITTED, EditSession
)
from errors import BoardError, UndoStackEmpty
from lane_layout import BoardGeometry, Rect, build_geometry
from prefs import BoardPrefs
from store import JsonBoardStore, StoreError
import status_rules

logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).resolve().parent
PREF_PATH = APP_DIR / "board.ini"
DATA_PATH = APP_DIR / "board.json"


def hex_to_qcolor(s: str, fallback: str = "#000000") -> QColor:
    c = QColor(s)
    if not c.isValid():
        c = QColor(fallback)
    return c


def to_qdate(d: dt.date) -> QDate:
    return QDate(d.year, d.month, d.day)


def from_qdate(qd: QDate) -> dt.date:
    return dt.date(qd.year(), qd.month(), qd.day())


def item_caption(item: ScheduledItem) -> str:
    if isinstance(item, Assay):
        return item.protocol or f"#{item.id}"
    if isinstance(item, CalibrationEvent):
        return f"Calibration {item.scope}" + (f" · {item.protocol}" if item.protocol else "")
    if isinstance(item, VacationEvent):
        return item.person or "Vacation"
    return str(item.id)


class HistoryDialog(QDialog):
    """Lists undoable actions, newest first; picking one undoes back to before it."""
    def __init__(self, labels: List[str], parent=None):
        super().__init__(parent)
        self.setWindowTitle("History")
        self.setModal(True)
        self.steps: Optional[int] = None

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Select an action to undo (with everything after it):"))

        self.list_widget = QListWidget()
        for idx, label in enumerate(reversed(labels)):
            item = QListWidgetItem(f"{idx + 1}. {label}")
            item.setData(Qt.ItemDataRole.UserRole, idx + 1)
            self.list_widget.addItem(item)
        self.list_widget.itemSelectionChanged.connect(self._on_selection_changed)
        self.list_widget.itemDoubleClicked.connect(self._accept_selection)
        layout.addWidget(self.list_widget)

        buttons = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        self.restore_btn = buttons.addButton("Undo to here", QDialogButtonBox.ButtonRole.AcceptRole)
        self.restore_btn.setEnabled(False)
        self.restore_btn.clicked.connect(self._accept_selection)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    def _on_selection_changed(self):
        self.restore_btn.setEnabled(bool(self.list_widget.selectedItems()))

    def _accept_selection(self):
        items = self.list_widget.selectedItems()
        if not items:
            return
        self.steps = int(items[0].data(Qt.ItemDataRole.UserRole))
        self.accept()


class LaneEditorDialog(QDialog):
    """Add, rename and delete terminals and safety responsibles. Each change is undoable."""
    def __init__(self, owner: "MainWindow", parent=None):
        super().__init__(parent)
        self.owner = owner
        self.setWindowTitle("Lanes")
        self.setModal(True)
        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Vacation and Pending are fixed and not listed."))
        self.list = QListWidget()
        self.list.currentRowChanged.connect(self._update_buttons)
        layout.addWidget(self.list)

        row = QHBoxLayout()
        add_term = QPushButton("Add terminal"); add_term.clicked.connect(lambda: self._add(CAT_EFFICIENCY))
        add_safe = QPushButton("Add responsible"); add_safe.clicked.connect(lambda: self._add(CAT_SAFETY))
        self.rename_btn = QPushButton("Rename…"); self.rename_btn.clicked.connect(self._rename_selected)
        self.delete_btn = QPushButton("Delete"); self.delete_btn.clicked.connect(self._delete_selected)
        for b in (add_term, add_safe, self.rename_btn, self.delete_btn):
            row.addWidget(b)
        layout.addLayout(row)

        btns = QDialogButtonBox(QDialogButtonBox.StandardButton.Close)
        btns.rejected.connect(self.accept)
        layout.addWidget(btns)
        self._rebuild_list()

    @property
    def session(self) -> EditSession:
        return self.owner.session

    def _rebuild_list(self, select: Optional[LaneRef] = None):
        self.list.clear()
        model = self.session.current
        for ref in model.lanes():
            if ref.category not in (CAT_EFFICIENCY, CAT_SAFETY):
                continue
            kind = "Terminal" if ref.category == CAT_EFFICIENCY else "Safety"
            item = QListWidgetItem(f"{kind} {ref.id} — {model.lane_name(ref)}")
            item.setData(Qt.ItemDataRole.UserRole, ref)
            self.list.addItem(item)
            if ref == select:
                self.list.setCurrentItem(item)
        self._update_buttons(self.list.currentRow())

    def _update_buttons(self, row: int):
        enabled = row is not None and row >= 0 and self.list.count() > 0
        self.rename_btn.setEnabled(enabled)
        self.delete_btn.setEnabled(enabled)

    def _selected_ref(self) -> Optional[LaneRef]:
        item = self.list.currentItem()
        if not item:
            return None
        return LaneRef(*item.data(Qt.ItemDataRole.UserRole))

    def _add(self, category: str):
        name, ok = QInputDialog.getText(self, "New lane", "Name:")
        if not ok:
            return
        try:
            ref = self.session.add_lane(category, name)
        except (BoardError, ValueError) as e:
            QMessageBox.warning(self, "Lanes", str(e)); return
        self._rebuild_list(select=ref)

    def _rename_selected(self):
        ref = self._selected_ref()
        if ref is None:
            return
        current = self.session.current.lane_name(ref)
        name, ok = QInputDialog.getText(self, "Rename lane", "Name:", text=current)
        if not ok or not name.strip():
            return
        try:
            self.session.rename_lane(ref, name.strip())
        except BoardError as e:
            QMessageBox.warning(self, "Lanes", str(e)); return
        self._rebuild_list(select=ref)

    def _delete_selected(self):
        ref = self._selected_ref()
        if ref is None:
            return
        confirm = QMessageBox.question(
            self, "Delete lane", f"Delete “{self.session.current.lane_name(ref)}”?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        if confirm != QMessageBox.StandardButton.Yes:
            return
        try:
            self.session.delete_lane(ref)
        except BoardError as e:
            QMessageBox.warning(self, "Lanes", str(e)); return
        self._rebuild_list()


class ItemEditDialog(QDialog):
    """Create or edit an item. Only dates, lane, status and the label fields are editable here."""
    KINDS = [("Efficiency assay", "efficiency"), ("Safety assay", "safety"),
             ("Calibration", "calibration"), ("Vacation", "vacation")]

    def __init__(self, session: EditSession, item: Optional[ScheduledItem] = None,
                 start: Optional[dt.date] = None, parent=None):
        super().__init__(parent)
        self.session = session
        self.item = item
        self.setWindowTitle("Edit Item" if item else "New Item")
        self.setModal(True)
        model = session.current
        start = item.start_date if item else (start or dt.date.today())
        end = item.end_date if item else start + dt.timedelta(days=4)

        form = QFormLayout(self)
        self.kind_combo = QComboBox()
        for label, kind in self.KINDS:
            self.kind_combo.addItem(label, kind)
        if item is not None:
            self.kind_combo.setCurrentIndex([k for _, k in self.KINDS].index(item.kind))
            self.kind_combo.setEnabled(False)
        self.kind_combo.currentIndexChanged.connect(self._refresh_fields)
        form.addRow("Kind:", self.kind_combo)

        self.label_edit = QLineEdit(self._initial_label())
        form.addRow("Protocol / person:", self.label_edit)

        self.start_edit = QDateEdit(to_qdate(start)); self.start_edit.setCalendarPopup(True)
        self.end_edit = QDateEdit(to_qdate(end)); self.end_edit.setCalendarPopup(True)
        self.start_edit.setDisplayFormat("yyyy-MM-dd"); self.end_edit.setDisplayFormat("yyyy-MM-dd")
        form.addRow("Start:", self.start_edit)
        form.addRow("End:", self.end_edit)

        self.lane_combo = QComboBox()
        for ref in model.lanes():
            if ref.category in (CAT_EFFICIENCY, CAT_SAFETY, CAT_PENDING):
                self.lane_combo.addItem(model.lane_name(ref), ref)
        if item is not None and isinstance(item, Assay):
            lane = model.lane_of(item)
            idx = self.lane_combo.findText(model.lane_name(lane))
            if idx >= 0:
                self.lane_combo.setCurrentIndex(idx)
            self.lane_combo.setEnabled(False)  # moving lanes goes through drag
        form.addRow("Lane:", self.lane_combo)

        self.scope_combo = QComboBox(); self.scope_combo.addItems(list(CALIBRATION_SCOPES))
        if isinstance(item, CalibrationEvent):
            self.scope_combo.setCurrentText(item.scope)
        form.addRow("Calibration scope:", self.scope_combo)

        self.status_combo = QComboBox()
        if item is not None:
            self.status_combo.addItem(item.status, item.status)
            lane = model.lane_of(item)
            has_lane = lane is not None and lane.category != CAT_PENDING
            for target in sorted(status_rules.allowed_targets(item, has_lane)):
                self.status_combo.addItem(target, target)
        form.addRow("Status:", self.status_combo)

        box = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        box.accepted.connect(self.accept); box.rejected.connect(self.reject)
        form.addRow(box)
        self._refresh_fields()

    def _initial_label(self) -> str:
        if isinstance(self.item, (Assay, CalibrationEvent)):
            return self.item.protocol
        if isinstance(self.item, VacationEvent):
            return self.item.person
        return ""

    def _kind(self) -> str:
        return self.kind_combo.currentData()

    def _refresh_fields(self):
        kind = self._kind()
        self.lane_combo.setEnabled(self.item is None and kind in ("efficiency", "safety"))
        self.scope_combo.setEnabled(kind == "calibration")
        self.status_combo.setEnabled(self.item is not None and self.status_combo.count() > 1)

    def apply(self) -> ScheduledItem:
        """Push the dialog's values through the session. Raises BoardError on rejection."""
        start = from_qdate(self.start_edit.date())
        end = from_qdate(self.end_edit.date())
        label = self.label_edit.text().strip()
        kind = self._kind()
        if self.item is not None:
            changes: Dict[str, object] = {"start_date": start, "end_date": end}
            if isinstance(self.item, VacationEvent):
                changes["person"] = label
            else:
                changes["protocol"] = label
            if isinstance(self.item, CalibrationEvent):
                changes["scope"] = self.scope_combo.currentText()
            status = self.status_combo.currentData()
            if status and status != self.item.status:
                changes["status"] = status
            return self.session.edit_item(self.item.id, **changes)

        lane: LaneRef = LaneRef(*self.lane_combo.currentData())
        if kind in ("efficiency", "safety"):
            if lane.category == CAT_SAFETY:
                new: ScheduledItem = SafetyAssay(0, start, end, protocol=label, lane_id=str(lane.id))
            elif lane.category == CAT_EFFICIENCY:
                new = EfficiencyAssay(0, start, end, protocol=label, lane_id=int(lane.id))
            else:
                new = EfficiencyAssay(0, start, end, protocol=label, lane_id=None)
        elif kind == "calibration":
            new = CalibrationEvent(0, start, end, protocol=label, scope=self.scope_combo.currentText())
        else:
            new = VacationEvent(0, start, end, person=label)
        return self.session.add_item(new)


class ItemWidget(QWidget):
    def __init__(self, board: "BoardView", item: ScheduledItem, rect: Rect, overlay: bool = False):
        super().__init__(board)
        self.board = board
        self.item_id = item.id
        self.caption = item_caption(item)
        self.status = item.status
        self.overlay = overlay
        self.movable = item.draggable
        self.color = hex_to_qcolor(board.prefs.status_color(item.status), "#4879C5")
        self.setToolTip(f"{self.caption}\n{item.start_date} – {item.end_date}\n{item.status}")
        self.setMouseTracking(True)
        self.setCursor(Qt.CursorShape.OpenHandCursor if self.movable else Qt.CursorShape.ForbiddenCursor)
        self.place(rect)

    def place(self, rect: Rect):
        self.setGeometry(QRect(int(rect.x), int(rect.y), max(4, int(rect.w)), max(4, int(rect.h))))

    def paintEvent(self, event):
        p = QPainter(self); p.setRenderHint(QPainter.RenderHint.Antialiasing)
        rect = self.rect().adjusted(0, 0, -1, -1)
        fill = QColor(self.color); fill.setAlpha(60 if self.overlay else 200)
        border = QColor(self.color).darker(150)
        pen = QPen(border, 1)
        if self.overlay:
            pen.setStyle(Qt.PenStyle.DashLine)
        p.setBrush(QBrush(fill)); p.setPen(pen)
        p.drawRoundedRect(rect, 4, 4)
        p.setPen(QColor("#1E1E1E") if self.overlay else QColor("#FFFFFF"))
        p.setFont(QFont("Segoe UI", 8, QFont.Weight.Medium))
        flags = Qt.AlignmentFlag.AlignLeft | (Qt.AlignmentFlag.AlignTop if self.overlay else Qt.AlignmentFlag.AlignVCenter)
        p.drawText(rect.adjusted(6, 2, -4, 0), flags, self.caption)

    def _board_pos(self, e):
        pt = self.mapToParent(e.position().toPoint())
        return float(pt.x()), float(pt.y())

    def mousePressEvent(self, e):
        if e.button() == Qt.MouseButton.LeftButton:
            x, y = self._board_pos(e)
            if self.board.drag.press(x, y, PRIMARY_BUTTON, item_id=self.item_id):
                self.raise_()
                self.setCursor(Qt.CursorShape.ClosedHandCursor)
            elif not self.movable and self.board.owner:
                self.board.owner.flash_status("Vacation items cannot be dragged", warn=True)
            e.accept()
        else:
            super().mousePressEvent(e)

    def mouseMoveEvent(self, e):
        drag = self.board.drag
        if drag.dragging and drag.item_id == self.item_id:
            x, y = self._board_pos(e)
            floating = drag.move(x, y)
            if floating is not None:
                self.move(int(floating.x), int(floating.y))
            e.accept()
            return
        super().mouseMoveEvent(e)

    def mouseReleaseEvent(self, e):
        drag = self.board.drag
        if e.button() == Qt.MouseButton.LeftButton and drag.dragging:
            # every pointer-up ends the drag, whichever widget reports it
            x, y = self._board_pos(e)
            self.board.finish_drag(x, y)
            e.accept()
            return
        super().mouseReleaseEvent(e)

    def mouseDoubleClickEvent(self, e):
        if self.board.owner:
            self.board.owner.edit_item(self.item_id)
        e.accept()

    def contextMenuEvent(self, e):
        owner = self.board.owner
        if owner is None:
            return
        item = owner.session.current.find_item(self.item_id)
        if item is None:
            return
        menu = QMenu(self)
        edit_act = menu.addAction("Edit…")
        status_acts: Dict[QAction, str] = {}
        lane = owner.session.current.lane_of(item)
        has_lane = lane is not None and lane.category != CAT_PENDING
        targets = sorted(status_rules.allowed_targets(item, has_lane))
        if targets:
            sub = menu.addMenu("Set status")
            for target in targets:
                status_acts[sub.addAction(target)] = target
        menu.addSeparator()
        del_act = menu.addAction("Delete")
        chosen = menu.exec(e.globalPos())
        if chosen is None:
            return
        if chosen is edit_act:
            owner.edit_item(self.item_id)
        elif chosen is del_act:
            owner.run_action(lambda: owner.session.delete_item(self.item_id), "Item deleted")
        elif chosen in status_acts:
            target = status_acts[chosen]
            owner.run_action(lambda: owner.session.set_status(self.item_id, target), f"Status: {target}")


class BoardView(QWidget):
    def __init__(self, session: EditSession, prefs: BoardPrefs, parent=None):
        super().__init__(parent)
        self.owner: Optional["MainWindow"] = None
        self.session = session
        self.prefs = prefs
        self._geo: Optional[BoardGeometry] = None
        self.item_widgets: List[ItemWidget] = []
        self.drag = DragController(session, self.board_geometry)
        self.setMouseTracking(True)
        self.rebuild()

    def board_geometry(self) -> BoardGeometry:
        if self._geo is None:
            self._compute_geometry()
        return self._geo

    def _compute_geometry(self):
        model = self.session.current
        p = self.prefs
        cal_range = compute_range(model.all_items(), dt.date.today(), p.lead_days, p.trail_days,
                                  p.empty_before_days, p.empty_after_days)
        self._geo = build_geometry(model, p, cal_range)

    def clear_items(self):
        for w in self.item_widgets:
            w.deleteLater()
        self.item_widgets.clear()

    def rebuild(self):
        """Re-derive the whole layout from the session's current board."""
        self.drag.abort()
        self._compute_geometry()
        geo = self._geo
        self.setFixedSize(QSize(int(geo.width) + 1, int(geo.height) + 1))
        self.clear_items()
        model = self.session.current
        for cal in model.calibrations:
            rect = geo.overlay_rects.get(cal.id)
            if rect is not None:
                self._add_widget(cal, rect, overlay=True)
        for item in model.all_items():
            rect = geo.item_rects.get(item.id)
            if rect is not None:
                self._add_widget(item, rect)
        self.update()

    def _add_widget(self, item: ScheduledItem, rect: Rect, overlay: bool = False):
        w = ItemWidget(self, item, rect, overlay=overlay)
        w.show()
        self.item_widgets.append(w)

    def set_cell_width(self, width: int):
        self.prefs.cell_width = max(4, int(width))
        self.rebuild()

    def finish_drag(self, x: float, y: float):
        outcome = self.drag.release(x, y)
        if not outcome.changed:
            # the session did not change: put the item back from the model
            self.rebuild()
        if self.owner:
            if outcome.kind == OUTCOME_SWAPPED:
                self.owner.flash_status("Items swapped")
            elif outcome.kind == OUTCOME_MOVED:
                self.owner.flash_status("Item moved")

    def paintEvent(self, event):
        geo = self.board_geometry()
        p = QPainter(self)
        prefs = self.prefs
        p.fillRect(self.rect(), QColor("#FFFFFF"))
        grid_pen = QPen(hex_to_qcolor(prefs.grid_line, "#DCE0E6"))
        weekend = hex_to_qcolor(prefs.weekend_fill, "#F3F5FA")
        holiday = hex_to_qcolor(prefs.holiday_fill, "#FDECEC")
        top = int(geo.origin_y); bottom = int(geo.height)
        cw = geo.cell_width

        holiday_days = set()
        for h in self.session.current.holidays:
            d = h.start_date
            while d <= h.end_date:
                holiday_days.add(d); d += dt.timedelta(days=1)

        # Columns + header
        p.setFont(QFont("Segoe UI", 8))
        month_font = QFont("Segoe UI", 8, QFont.Weight.Bold)
        today = dt.date.today()
        for col, day in enumerate(geo.cal_range.dates()):
            x = int(geo.column_x(col))
            if day in holiday_days:
                p.fillRect(QRect(x, top, int(cw), bottom - top), holiday)
            elif day.weekday() >= 5:
                p.fillRect(QRect(x, top, int(cw), bottom - top), weekend)
            p.setPen(grid_pen); p.drawLine(x, top, x, bottom)
            p.setPen(QColor("#787C82"))
            p.drawText(QRect(x, top - 18, int(cw), 16), Qt.AlignmentFlag.AlignCenter, str(day.day))
            if day.day == 1 or col == 0:
                p.setFont(month_font)
                p.drawText(x + 2, top - 24, day.strftime("%b %Y"))
                p.setFont(QFont("Segoe UI", 8))
            if day == today:
                p.setPen(QPen(QColor("#FF3B30"), 2)); p.drawLine(x + int(cw / 2), top, x + int(cw / 2), bottom)

        # Lane bands + labels
        label_pen = QPen(hex_to_qcolor(prefs.lane_label_text, "#3C4043"))
        for idx, band in enumerate(geo.bands):
            y0 = int(band.top); h = int(band.height)
            p.fillRect(QRect(0, y0, int(geo.origin_x), h), QColor("#F8F9FB") if idx % 2 == 0 else QColor("#EEF1F6"))
            p.setPen(grid_pen); p.drawLine(0, y0 + h, int(geo.width), y0 + h)
            p.setPen(label_pen); p.setFont(QFont("Segoe UI", 9, QFont.Weight.Medium))
            p.drawText(QRect(8, y0, int(geo.origin_x) - 12, h),
                       Qt.AlignmentFlag.AlignVCenter | Qt.AlignmentFlag.AlignLeft, band.name)


class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.resize(1280, 800)
        self.prefs = BoardPrefs.from_config(PREF_PATH)
        self.store = JsonBoardStore(DATA_PATH)
        self.session = EditSession(self.store, undo_depth=self.prefs.undo_depth,
                                   dispatch=lambda fn: QTimer.singleShot(0, fn))
        self.session.add_listener(self.on_session_event)

        # Toolbar
        tb = QToolBar("Controls", self); tb.setMovable(False); self.addToolBar(tb)
        self.save_act = QAction("Save", self); self.save_act.triggered.connect(self.save)
        self.cancel_act = QAction("Cancel", self); self.cancel_act.triggered.connect(self.cancel)
        self.undo_act = QAction("Undo", self); self.undo_act.triggered.connect(self.perform_undo)
        history_act = QAction("History", self); history_act.triggered.connect(self.show_history_dialog)
        lanes_act = QAction("Lanes…", self); lanes_act.triggered.connect(self.open_lane_editor)
        new_act = QAction("New item…", self); new_act.triggered.connect(self.new_item)
        holiday_act = QAction("Holiday…", self); holiday_act.triggered.connect(self.add_holiday)
        for act in (self.save_act, self.cancel_act, self.undo_act, history_act):
            tb.addAction(act)
        tb.addSeparator()
        for act in (new_act, holiday_act, lanes_act):
            tb.addAction(act)

        tb.addWidget(QLabel("  Zoom: "))
        self.zoom_slider = QSlider(Qt.Orientation.Horizontal)
        self.zoom_slider.setMinimum(10); self.zoom_slider.setMaximum(80)
        self.zoom_slider.setFixedWidth(180)
        self.zoom_slider.setValue(int(self.prefs.cell_width))
        self.zoom_slider.valueChanged.connect(self.on_zoom_changed)
        tb.addWidget(self.zoom_slider)
        self.zoom_label = QLabel(f"{self.prefs.cell_width}px/day"); tb.addWidget(self.zoom_label)

        # Board + scroll
        self.board = BoardView(self.session, self.prefs); self.board.owner = self
        scroll = QScrollArea(); scroll.setWidget(self.board); scroll.setWidgetResizable(False)
        self.scroll_area = scroll
        self.setCentralWidget(scroll)
        self._init_shortcuts()
        self.update_title()
        self.statusBar().showMessage("Ready", 1500)
        QTimer.singleShot(0, self.scroll_to_today)

    def _init_shortcuts(self):
        QShortcut(QKeySequence.StandardKey.Save, self, activated=self.save)
        QShortcut(QKeySequence.StandardKey.Undo, self, activated=self.perform_undo)
        QShortcut(QKeySequence(Qt.Key.Key_Escape), self, activated=self.board.rebuild)

    def scroll_to_today(self):
        geo = self.board.board_geometry()
        col = geo.cal_range.column_of(dt.date.today())
        x = geo.column_x(col)
        sb = self.scroll_area.horizontalScrollBar()
        sb.setValue(max(0, min(int(x - self.scroll_area.viewport().width() / 3), sb.maximum())))

    def update_title(self):
        mark = " *" if self.session.dirty else ""
        self.setWindowTitle(f"Lab Scheduling Board{mark}")
        self.save_act.setEnabled(self.session.dirty)
        self.cancel_act.setEnabled(self.session.dirty)
        self.undo_act.setEnabled(self.session.can_undo())

    def on_session_event(self, event: str):
        if event == EV_COMMIT_FAILED:
            err = self.session.last_error
            QMessageBox.warning(self, "Save Error", f"Failed to save {DATA_PATH.name}: {err}")
            return
        if event != EV_COMMITTED:
            self.board.rebuild()
        self.update_title()

    def flash_status(self, msg: str, warn: bool = False):
        if warn: self.statusBar().setStyleSheet("color:#b00020;")
        else: self.statusBar().setStyleSheet("")
        self.statusBar().showMessage(msg, 2500)

    def run_action(self, fn, done_msg: str = "") -> bool:
        try:
            fn()
        except BoardError as e:
            self.flash_status(str(e), warn=True)
            return False
        if done_msg:
            self.flash_status(done_msg)
        return True

    # --- session commands ---
    def save(self):
        self.session.commit()
        self.flash_status("Saved")

    def cancel(self):
        if not self.session.dirty:
            return
        self.session.discard()
        self.flash_status("Changes discarded")

    def perform_undo(self):
        try:
            label = self.session.undo()
        except UndoStackEmpty:
            self.statusBar().showMessage("Nothing to undo", 1500)
            return
        self.statusBar().showMessage(f"Undone: {label}", 1500)

    def show_history_dialog(self):
        labels = self.session.history()
        if not labels:
            self.statusBar().showMessage("History is empty", 1500)
            return
        dialog = HistoryDialog(labels, parent=self)
        if dialog.exec() == QDialog.DialogCode.Accepted and dialog.steps:
            self.session.undo(dialog.steps)
            self.statusBar().showMessage(f"Undid {dialog.steps} action{'s' if dialog.steps != 1 else ''}", 2000)

    def open_lane_editor(self):
        LaneEditorDialog(self, parent=self).exec()

    def new_item(self):
        dlg = ItemEditDialog(self.session, parent=self)
        if dlg.exec() == QDialog.DialogCode.Accepted:
            self.run_action(dlg.apply, "Item added")

    def edit_item(self, item_id: int):
        item = self.session.current.find_item(item_id)
        if item is None:
            return
        dlg = ItemEditDialog(self.session, item, parent=self)
        if dlg.exec() == QDialog.DialogCode.Accepted:
            self.run_action(dlg.apply, "Item updated")

    def add_holiday(self):
        dlg = QDialog(self); dlg.setWindowTitle("Holiday"); dlg.setModal(True)
        form = QFormLayout(dlg)
        name_edit = QLineEdit()
        start_edit = QDateEdit(QDate.currentDate()); start_edit.setCalendarPopup(True)
        days_spin = QSpinBox(); days_spin.setRange(1, 60); days_spin.setValue(1)
        form.addRow("Name:", name_edit); form.addRow("First day:", start_edit); form.addRow("Days:", days_spin)
        box = QDialogButtonBox(QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel)
        box.accepted.connect(dlg.accept); box.rejected.connect(dlg.reject); form.addRow(box)
        if dlg.exec() != QDialog.DialogCode.Accepted:
            return
        start = from_qdate(start_edit.date())
        end = start + dt.timedelta(days=days_spin.value() - 1)
        self.run_action(lambda: self.session.add_holiday(name_edit.text().strip(), start, end), "Holiday added")

    def on_zoom_changed(self, val: int):
        self.zoom_label.setText(f"{val}px/day")
        self.board.set_cell_width(val)

    def closeEvent(self, e):
        if self.session.dirty:
            answer = QMessageBox.question(
                self, "Unsaved changes", "Save changes before closing?",
                QMessageBox.StandardButton.Save | QMessageBox.StandardButton.Discard | QMessageBox.StandardButton.Cancel,
                QMessageBox.StandardButton.Save,
            )
            if answer == QMessageBox.StandardButton.Cancel:
                e.ignore()
                return
            if answer == QMessageBox.StandardButton.Save:
                # write synchronously; the event loop is going away
                self.session.dispatch = lambda fn: fn()
                self.session.commit()
        try:
            self.prefs.save(PREF_PATH)
        except OSError as err:
            logger.warning("Could not save preferences: %s", err)
        super().closeEvent(e)


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = QApplication(sys.argv)
    try:
        w = MainWindow()
    except StoreError as e:
        QMessageBox.critical(None, "Load Error", str(e))
        sys.exit(1)
    w.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
