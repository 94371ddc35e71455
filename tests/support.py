import datetime as dt
from copy import deepcopy

from board_model import BoardModel


def d(month: int, day: int, year: int = 2025) -> dt.date:
    return dt.date(year, month, day)


class MemoryStore:
    """In-memory stand-in for JsonBoardStore."""

    def __init__(self, model=None, fail=False):
        self.model = model if model is not None else BoardModel.with_default_lanes()
        self.fail = fail
        self.commits = []

    def load(self):
        return deepcopy(self.model)

    def commit(self, model):
        if self.fail:
            raise OSError("disk full")
        self.commits.append(deepcopy(model))
        self.model = deepcopy(model)
