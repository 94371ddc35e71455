# JSON-file persistence for the board.

from __future__ import annotations
from pathlib import Path
import json
import logging
import os
import tempfile

from board_model import BoardModel

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


class StoreError(Exception):
    pass


class JsonBoardStore:
    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> BoardModel:
        if not self.path.exists():
            logger.info("No board file at %s; starting with default lanes", self.path)
            return BoardModel.with_default_lanes()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Failed to read {self.path.name}: {e}") from e
        if not isinstance(raw, dict):
            raise StoreError(f"Malformed board in {self.path.name}: expected an object")
        try:
            version = int(raw.get("version", FORMAT_VERSION))
        except (TypeError, ValueError) as e:
            raise StoreError(f"Bad format version in {self.path.name}: {raw.get('version')!r}") from e
        if version > FORMAT_VERSION:
            raise StoreError(f"{self.path.name} was written by a newer version ({version})")
        board = raw.get("board", {})
        if not isinstance(board, dict):
            raise StoreError(f"Malformed board in {self.path.name}: 'board' is not an object")
        try:
            model = BoardModel.from_dict(board)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed board in {self.path.name}: {e}") from e
        logger.info("Loaded %d items from %s", len(model.all_items()), self.path)
        return model

    def commit(self, model: BoardModel):
        payload = {"version": FORMAT_VERSION, "board": model.to_dict()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError as e:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise StoreError(f"Failed to save {self.path.name}: {e}") from e
        logger.info("Saved %d items to %s", len(model.all_items()), self.path)
