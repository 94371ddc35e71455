import unittest

from board_model import (
    BoardModel, CalibrationEvent, EfficiencyAssay, LaneRef, SafetyAssay, VacationEvent,
    CAT_EFFICIENCY, CAT_SAFETY, PENDING_LANE, SCOPE_ENERGY_1_4, STATUS_PENDING,
)
from calendar_map import compute_range
from drag import OUTCOME_MOVED, OUTCOME_NONE, OUTCOME_SWAPPED, DragController, resolve_drop
from edit_session import EditSession
from lane_layout import build_geometry
from prefs import BoardPrefs
from tests.support import MemoryStore, d

# Default prefs: grid starts at x=160, y=40; terminal bands are 34px tall.
# The first item starts on 2025-03-10, so the visible range starts 2025-02-08
# and 2025-03-10 sits in column 30 (x = 910).


def make_board(*items):
    model = BoardModel.with_default_lanes()
    for it in items:
        model.collection_for(it).append(it)
    session = EditSession(MemoryStore(model))
    prefs = BoardPrefs()

    def geometry():
        return build_geometry(session.current, prefs,
                              compute_range(session.current.all_items()))

    return session, DragController(session, geometry), geometry


class TestResolveDrop(unittest.TestCase):
    def setUp(self) -> None:
        self.session, _, geometry = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        self.geo = geometry()

    def resolve(self, x, y):
        g = self.geo
        return resolve_drop((x, y), (g.origin_x, g.origin_y), g.cell_width, g.bands, g.cal_range.start)

    def test_maps_left_edge_and_midpoint(self) -> None:
        target = self.resolve(990, 57)
        self.assertEqual(target.start_date, d(3, 13))
        self.assertEqual(target.lane, LaneRef(CAT_EFFICIENCY, 1))
        self.assertEqual(self.resolve(910, 125).lane, LaneRef(CAT_EFFICIENCY, 3))

    def test_outside_the_grid(self) -> None:
        self.assertIsNone(self.resolve(990, 20))
        self.assertIsNone(self.resolve(990, 5000))


class TestDragController(unittest.TestCase):
    def test_drag_right_shifts_dates(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        self.assertTrue(drag.press(920, 50))
        self.assertTrue(drag.dragging)
        floating = drag.move(1000, 50)
        self.assertEqual(floating.x, 990)
        outcome = drag.release(1000, 50)
        self.assertEqual(outcome.kind, OUTCOME_MOVED)
        self.assertFalse(drag.dragging)
        item = s.item(1)
        self.assertEqual((item.start_date, item.end_date), (d(3, 13), d(3, 17)))
        self.assertEqual(item.lane_id, 1)

    def test_drag_down_changes_terminal(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        drag.press(920, 50)
        drag.release(920, 50 + 68)
        self.assertEqual(s.item(1).lane_id, 3)
        self.assertEqual(s.item(1).start_date, d(3, 10))

    def test_drag_into_safety_and_pending(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        # safety A band: 312..336
        drag.press(920, 50)
        drag.release(920, 50 + 267)
        moved = s.item(1)
        self.assertIsInstance(moved, SafetyAssay)
        self.assertEqual(moved.lane_id, "A")

        # Pending band: 384..422 (safety A is still one row high)
        drag.press(920, 320)
        drag.release(920, 320 + 80)
        parked = s.item(1)
        self.assertIsInstance(parked, EfficiencyAssay)
        self.assertIsNone(parked.lane_id)
        self.assertEqual(parked.status, STATUS_PENDING)
        self.assertEqual(s.current.lane_of(parked), PENDING_LANE)

    def test_illegal_or_outside_drop_is_a_no_op(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        before = s.item(1)
        drag.press(920, 50)
        # vacation band: 360..384
        outcome = drag.release(920, 50 + 313)
        self.assertEqual(outcome.kind, OUTCOME_NONE)
        drag.press(920, 50)
        self.assertEqual(drag.release(920, 5000).kind, OUTCOME_NONE)
        self.assertEqual(s.item(1), before)
        self.assertFalse(s.can_undo())
        self.assertFalse(drag.dragging)

    def test_drop_in_place_changes_nothing(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        drag.press(920, 50)
        self.assertEqual(drag.release(925, 52).kind, OUTCOME_NONE)
        self.assertFalse(s.can_undo())

    def test_swap_is_symmetric(self) -> None:
        a = EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1)
        b = EfficiencyAssay(2, d(3, 20), d(3, 22), lane_id=2)
        s, drag, _ = make_board(a, b)
        drag.press(920, 50)
        outcome = drag.release(1170, 85)
        self.assertEqual((outcome.kind, outcome.item_id, outcome.other_id), (OUTCOME_SWAPPED, 1, 2))
        self.assertEqual((s.item(1).start_date, s.item(1).lane_id), (d(3, 20), 1))
        self.assertEqual((s.item(2).start_date, s.item(2).lane_id), (d(3, 10), 2))

        drag.press(1170, 50)
        self.assertEqual(drag.release(920, 85).kind, OUTCOME_SWAPPED)
        self.assertEqual(s.current, s.baseline)

    def test_assay_over_calibration_repositions(self) -> None:
        assay = EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=5)
        cal = CalibrationEvent(3, d(3, 20), d(3, 25), scope=SCOPE_ENERGY_1_4)
        s, drag, geometry = make_board(assay, cal)
        self.assertEqual(geometry().item_at(1170, 120, exclude=1), 3)
        drag.press(920, 190)
        outcome = drag.release(1170, 120)
        self.assertEqual(outcome.kind, OUTCOME_MOVED)
        self.assertEqual(s.item(1).lane_id, 3)
        self.assertEqual(s.item(1).start_date, d(3, 20))
        self.assertEqual(s.item(3).start_date, d(3, 20))

    def test_overlapping_items_drag_the_pressed_one(self) -> None:
        # both on terminal 1; item 2 is painted over item 1 from 2025-03-12 (x = 960)
        a = EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1)
        b = EfficiencyAssay(2, d(3, 12), d(3, 16), lane_id=1)
        s, drag, geometry = make_board(a, b)
        self.assertEqual(geometry().item_at(965, 50), 2)

        self.assertTrue(drag.press(965, 50, item_id=1))
        self.assertEqual(drag.item_id, 1)
        outcome = drag.release(965, 50 + 68)
        self.assertEqual((outcome.kind, outcome.item_id), (OUTCOME_MOVED, 1))
        self.assertFalse(drag.dragging)
        self.assertEqual(s.item(1).lane_id, 3)
        self.assertEqual(s.item(1).start_date, d(3, 10))
        self.assertEqual(s.item(2).lane_id, 1)

    def test_hit_test_picks_the_topmost_item(self) -> None:
        a = EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1)
        b = EfficiencyAssay(2, d(3, 12), d(3, 16), lane_id=1)
        s, drag, _ = make_board(a, b)
        self.assertTrue(drag.press(965, 50))
        self.assertEqual(drag.item_id, 2)
        drag.release(965, 50 + 68)
        self.assertEqual(s.item(2).lane_id, 3)
        self.assertFalse(drag.dragging)
        self.assertTrue(drag.press(965, 50, item_id=1))
        drag.abort()
        self.assertFalse(drag.press(965, 50, item_id=404))

    def test_vacation_cannot_be_picked_up(self) -> None:
        vac = VacationEvent(4, d(3, 10), d(3, 12), person="Ana")
        _, drag, geometry = make_board(vac)
        r = geometry().item_rects[4]
        self.assertFalse(drag.press(r.x + 2, r.y + 2))
        self.assertFalse(drag.dragging)

    def test_only_primary_button_drags(self) -> None:
        _, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        self.assertFalse(drag.press(920, 50, button=2))
        self.assertFalse(drag.press(10, 10))

    def test_discard_aborts_drag(self) -> None:
        s, drag, _ = make_board(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1))
        drag.press(920, 50)
        s.discard()
        self.assertFalse(drag.dragging)
        self.assertEqual(drag.release(1000, 50).kind, OUTCOME_NONE)


if __name__ == "__main__":
    unittest.main(verbosity=2)
