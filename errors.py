# Recoverable board errors. None of them leaves the board half-edited:
# a rejected mutation is never applied and pushes no undo snapshot.

from __future__ import annotations


class BoardError(Exception):
    """Base class for every error raised by the scheduling core."""


class InvalidDateRange(BoardError):
    def __init__(self, start, end):
        super().__init__(f"End date {end} is before start date {start}")
        self.start = start
        self.end = end


class InvalidStateTransition(BoardError):
    def __init__(self, current: str, target: str, reason: str = ""):
        msg = f"Cannot change status from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.current = current
        self.target = target


class LaneInUse(BoardError):
    def __init__(self, lane, count: int):
        super().__init__(f"Lane '{lane}' is still used by {count} item{'s' if count != 1 else ''}")
        self.lane = lane
        self.count = count


class ProtectedLane(BoardError):
    pass


class UnknownItem(BoardError):
    pass


class UnknownLane(BoardError):
    pass


class DropResolutionFailed(BoardError):
    pass


class UndoStackEmpty(BoardError):
    pass
