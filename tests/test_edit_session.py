import unittest

from board_model import (
    BoardModel, CalibrationEvent, EfficiencyAssay, LaneRef, SafetyAssay, VacationEvent,
    CAT_EFFICIENCY, CAT_SAFETY, PENDING_LANE, VACATION_LANE, SCOPE_ENERGY_1_4,
    STATUS_AWAITING, STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING,
    STATUS_SAMPLE_RECEIVED,
)
from edit_session import EV_CHANGED, EV_COMMIT_FAILED, EV_COMMITTED, EV_UNDONE, EditSession
from errors import (
    DropResolutionFailed, InvalidDateRange, InvalidStateTransition, LaneInUse,
    ProtectedLane, UndoStackEmpty, UnknownItem, UnknownLane,
)
from tests.support import MemoryStore, d

T1 = LaneRef(CAT_EFFICIENCY, 1)
T2 = LaneRef(CAT_EFFICIENCY, 2)
SA = LaneRef(CAT_SAFETY, "A")


def seeded_store():
    model = BoardModel.with_default_lanes()
    model.efficiency.append(EfficiencyAssay(1, d(3, 10), d(3, 14), lane_id=1, protocol="p0"))
    model.safety.append(SafetyAssay(2, d(3, 20), d(3, 22), lane_id="A"))
    model.vacations.append(VacationEvent(3, d(4, 1), d(4, 4), person="Ana"))
    return MemoryStore(model)


class TestUndo(unittest.TestCase):
    def test_undo_stack_keeps_last_ten(self) -> None:
        s = EditSession(seeded_store())
        for i in range(1, 13):
            s.edit_item(1, protocol=f"p{i}")
        self.assertEqual(len(s.history()), 10)
        for _ in range(10):
            s.undo()
        self.assertEqual(s.item(1).protocol, "p2")
        with self.assertRaises(UndoStackEmpty):
            s.undo()
        self.assertEqual(s.item(1).protocol, "p2")
        self.assertTrue(s.dirty)

    def test_undo_back_to_baseline_is_clean(self) -> None:
        s = EditSession(seeded_store())
        s.edit_item(1, protocol="changed")
        self.assertTrue(s.dirty)
        self.assertEqual(s.undo(), "Edit efficiency")
        self.assertFalse(s.dirty)
        self.assertEqual(s.current, s.baseline)

    def test_multi_step_undo_notifies_once(self) -> None:
        s = EditSession(seeded_store())
        s.edit_item(1, protocol="a")
        s.move_item(2, d(3, 25))
        s.delete_item(3)
        events = []
        s.add_listener(events.append)
        self.assertEqual(s.undo(2), "Move safety")
        self.assertEqual(events, [EV_UNDONE])
        self.assertEqual(s.item(1).protocol, "a")
        self.assertEqual(s.item(2).start_date, d(3, 20))
        self.assertIsNotNone(s.current.find_item(3))
        self.assertEqual(s.undo(5), "Edit efficiency")
        self.assertEqual(s.current, s.baseline)
        self.assertFalse(s.can_undo())

    def test_undo_on_fresh_session(self) -> None:
        s = EditSession(seeded_store())
        self.assertFalse(s.can_undo())
        with self.assertRaises(UndoStackEmpty):
            s.undo()


class TestCommitDiscard(unittest.TestCase):
    def test_commit_persists_and_clears_dirty(self) -> None:
        store = seeded_store()
        events = []
        s = EditSession(store)
        s.add_listener(events.append)
        s.edit_item(1, protocol="new")
        s.commit()
        self.assertFalse(s.dirty)
        self.assertEqual(len(store.commits), 1)
        self.assertEqual(store.commits[0].find_item(1).protocol, "new")
        self.assertEqual(events, [EV_CHANGED, EV_COMMITTED])
        s.commit()
        self.assertEqual(store.commits[0], store.commits[1])

    def test_discard_after_commit_changes_nothing(self) -> None:
        s = EditSession(seeded_store())
        s.move_item(1, d(3, 12))
        s.commit()
        committed = s.current
        s.discard()
        self.assertEqual(s.current, committed)
        self.assertEqual(s.item(1).start_date, d(3, 12))
        self.assertFalse(s.dirty)

    def test_commit_is_dispatched(self) -> None:
        store = seeded_store()
        queued = []
        s = EditSession(store, dispatch=queued.append)
        s.edit_item(1, protocol="later")
        s.commit()
        self.assertEqual(store.commits, [])
        self.assertFalse(s.dirty)
        queued.pop()()
        self.assertEqual(len(store.commits), 1)

    def test_commit_failure_is_reported(self) -> None:
        store = seeded_store()
        store.fail = True
        events = []
        s = EditSession(store)
        s.add_listener(events.append)
        s.edit_item(1, protocol="lost")
        with self.assertLogs("edit_session", level="ERROR"):
            s.commit()
        self.assertIn(EV_COMMIT_FAILED, events)
        self.assertIsInstance(s.last_error, OSError)
        self.assertEqual(s.baseline.find_item(1).protocol, "lost")

    def test_discard_restores_baseline(self) -> None:
        s = EditSession(seeded_store())
        before = s.current.find_item(1)
        s.edit_item(1, protocol="x")
        s.delete_item(2)
        s.discard()
        self.assertFalse(s.dirty)
        self.assertEqual(s.item(1), before)
        self.assertIsNotNone(s.current.find_item(2))
        snapshot = s.current
        s.discard()
        self.assertEqual(s.current, snapshot)


class TestItems(unittest.TestCase):
    def test_invalid_dates_leave_no_trace(self) -> None:
        s = EditSession(seeded_store())
        with self.assertRaises(InvalidDateRange):
            s.add_item(EfficiencyAssay(0, d(3, 5), d(3, 1), lane_id=2))
        with self.assertRaises(InvalidDateRange):
            s.edit_item(1, end_date=d(3, 1))
        self.assertFalse(s.can_undo())
        self.assertFalse(s.dirty)
        self.assertEqual(s.item(1).end_date, d(3, 14))

    def test_add_item_assigns_id_and_lane_status(self) -> None:
        s = EditSession(seeded_store())
        added = s.add_item(EfficiencyAssay(0, d(3, 1), d(3, 2), status=STATUS_AWAITING))
        self.assertNotEqual(added.id, 0)
        self.assertEqual(added.status, STATUS_PENDING)
        self.assertIs(s.current.find_item(added.id), added)
        dup = s.add_item(EfficiencyAssay(1, d(3, 1), d(3, 2), lane_id=2))
        self.assertNotEqual(dup.id, 1)

    def test_unknown_lane_is_rejected(self) -> None:
        s = EditSession(seeded_store())
        with self.assertRaises(UnknownLane):
            s.add_item(EfficiencyAssay(0, d(3, 1), d(3, 2), lane_id=99))
        with self.assertRaises(UnknownLane):
            s.add_item(SafetyAssay(0, d(3, 1), d(3, 2), lane_id="Q"))
        with self.assertRaises(UnknownLane):
            s.edit_item(1, lane_id=99)
        self.assertFalse(s.can_undo())
        self.assertEqual(s.item(1).lane_id, 1)

        # a lane added later never picks up a stale pending item
        s.add_lane(CAT_EFFICIENCY, "Terminal 99", 99)
        self.assertEqual(s.current.items_in_lane(LaneRef(CAT_EFFICIENCY, 99)), [])
        moved = s.edit_item(1, lane_id=99)
        self.assertEqual(s.current.lane_of(moved), LaneRef(CAT_EFFICIENCY, 99))
        self.assertEqual(moved.status, STATUS_AWAITING)

    def test_ids_are_immutable(self) -> None:
        s = EditSession(seeded_store())
        with self.assertRaises(ValueError):
            s.edit_item(1, id=42)

    def test_unknown_item(self) -> None:
        s = EditSession(seeded_store())
        with self.assertRaises(UnknownItem):
            s.delete_item(404)

    def test_set_status(self) -> None:
        s = EditSession(seeded_store())
        s.set_status(1, STATUS_SAMPLE_RECEIVED)
        s.set_status(1, STATUS_IN_PROGRESS)
        with self.assertRaises(InvalidStateTransition):
            s.set_status(1, STATUS_AWAITING)
        self.assertEqual(s.item(1).status, STATUS_IN_PROGRESS)
        depth = len(s.history())
        s.set_status(1, STATUS_IN_PROGRESS)
        self.assertEqual(len(s.history()), depth)
        with self.assertRaises(InvalidStateTransition):
            s.set_status(3, STATUS_COMPLETED)

    def test_move_keeps_duration(self) -> None:
        s = EditSession(seeded_store())
        moved = s.move_item(1, d(3, 13))
        self.assertEqual((moved.start_date, moved.end_date), (d(3, 13), d(3, 17)))
        self.assertEqual(moved.lane_id, 1)

    def test_move_between_collections(self) -> None:
        s = EditSession(seeded_store())
        moved = s.move_item(1, d(3, 10), SA)
        self.assertIsInstance(moved, SafetyAssay)
        self.assertEqual(moved.lane_id, "A")
        self.assertEqual(moved.protocol, "p0")
        self.assertEqual(s.current.efficiency, [])
        self.assertEqual(len(s.current.safety), 2)

        back = s.move_item(2, d(3, 20), T2)
        self.assertIsInstance(back, EfficiencyAssay)
        self.assertEqual(back.lane_id, 2)

    def test_pending_round_trip(self) -> None:
        s = EditSession(seeded_store())
        s.set_status(1, STATUS_SAMPLE_RECEIVED)
        parked = s.move_item(1, d(3, 10), PENDING_LANE)
        self.assertEqual(parked.status, STATUS_PENDING)
        self.assertIsNone(parked.lane_id)
        self.assertEqual(s.current.lane_of(parked), PENDING_LANE)
        placed = s.move_item(1, d(3, 10), T2)
        self.assertEqual(placed.status, STATUS_AWAITING)

    def test_illegal_lane_is_rejected(self) -> None:
        s = EditSession(seeded_store())
        with self.assertRaises(DropResolutionFailed):
            s.move_item(1, d(3, 10), VACATION_LANE)
        with self.assertRaises(DropResolutionFailed):
            s.move_item(3, d(4, 2), T1)
        self.assertFalse(s.can_undo())

    def test_unchanged_move_pushes_nothing(self) -> None:
        s = EditSession(seeded_store())
        item = s.item(1)
        self.assertIs(s.move_item(1, d(3, 10), T1), item)
        self.assertFalse(s.can_undo())

    def test_swap_exchanges_dates(self) -> None:
        s = EditSession(seeded_store())
        s.swap_items(1, 2)
        a, b = s.item(1), s.item(2)
        self.assertEqual((a.start_date, a.end_date, a.lane_id), (d(3, 20), d(3, 22), 1))
        self.assertEqual((b.start_date, b.end_date, b.lane_id), (d(3, 10), d(3, 14), "A"))
        s.swap_items(2, 1)
        self.assertEqual(s.current, s.baseline)
        with self.assertRaises(ValueError):
            s.swap_items(1, 3)


class TestLanes(unittest.TestCase):
    def test_deleting_a_used_lane_is_refused(self) -> None:
        s = EditSession(seeded_store())
        with self.assertLogs("edit_session", level="WARNING"):
            with self.assertRaises(LaneInUse) as cm:
                s.delete_lane(T1)
        self.assertEqual(cm.exception.count, 1)
        self.assertTrue(s.current.has_lane(T1))
        self.assertFalse(s.can_undo())
        s.delete_item(1)
        s.delete_lane(T1)
        self.assertFalse(s.current.has_lane(T1))

    def test_calibration_scope_holds_its_terminals(self) -> None:
        s = EditSession(seeded_store())
        s.add_item(CalibrationEvent(0, d(5, 1), d(5, 2), scope=SCOPE_ENERGY_1_4))
        with self.assertRaises(LaneInUse):
            s.delete_lane(T2)
        s.delete_lane(LaneRef(CAT_EFFICIENCY, 6))

    def test_synthetic_lanes_are_protected(self) -> None:
        s = EditSession(seeded_store())
        for lane in (VACATION_LANE, PENDING_LANE):
            with self.assertRaises(ProtectedLane):
                s.delete_lane(lane)
            with self.assertRaises(ProtectedLane):
                s.rename_lane(lane, "x")

    def test_add_and_rename_lanes(self) -> None:
        s = EditSession(seeded_store())
        t9 = s.add_lane(CAT_EFFICIENCY, "")
        self.assertEqual(t9, LaneRef(CAT_EFFICIENCY, 9))
        self.assertEqual(s.current.lane_name(t9), "Terminal 9")
        sc = s.add_lane(CAT_SAFETY, "Marta")
        self.assertEqual(sc, LaneRef(CAT_SAFETY, "C"))
        with self.assertRaises(ValueError):
            s.add_lane(CAT_SAFETY, "Dup", "a")
        s.rename_lane(sc, "Marta R.")
        self.assertEqual(s.current.lane_name(sc), "Marta R.")
        s.undo()
        self.assertEqual(s.current.lane_name(sc), "Marta")

    def test_holidays(self) -> None:
        s = EditSession(seeded_store())
        h = s.add_holiday("Easter", d(4, 18), d(4, 21))
        self.assertEqual(s.current.holidays, [h])
        with self.assertRaises(InvalidDateRange):
            s.add_holiday("Bad", d(4, 2), d(4, 1))
        s.delete_holiday(h.id)
        self.assertEqual(s.current.holidays, [])
        with self.assertRaises(UnknownItem):
            s.delete_holiday(h.id)


if __name__ == "__main__":
    unittest.main(verbosity=2)
