from __future__ import annotations

from typing import Any, Dict, List, Optional

Entry = Dict[str, Any]


class EditHistory:
    """Linear undo/redo stack; adding after an undo drops the redo tail."""

    def __init__(self, entries: Optional[List[Entry]] = None, index: int = 0) -> None:
        self.entries: List[Entry] = list(entries or [])
        self.index = min(max(index, 0), max(len(self.entries) - 1, 0))

    @property
    def current(self) -> Optional[Entry]:
        return self.entries[self.index] if self.entries else None

    @property
    def original(self) -> Optional[Entry]:
        return self.entries[0] if self.entries else None

    @property
    def can_undo(self) -> bool:
        return self.index > 0

    @property
    def can_redo(self) -> bool:
        return self.index < len(self.entries) - 1

    def add(self, entry: Entry) -> None:
        self.entries = self.entries[: self.index + 1] + [entry]
        self.index = len(self.entries) - 1

    def undo(self) -> bool:
        if not self.can_undo:
            return False
        self.index -= 1
        return True

    def redo(self) -> bool:
        if not self.can_redo:
            return False
        self.index += 1
        return True

    def reset(self) -> None:
        self.entries = self.entries[:1]
        self.index = 0
