# single-entry command history

from __future__ import annotations

from typing import Optional

from errors import NoHistory

RECALL = "!!"


class HistorySlot:
    """Holds the most recently entered line.

    Lines produced by a recall are never stored, so ``!!`` twice in a row
    repeats the same command.
    """

    def __init__(self) -> None:
        self._line: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self._line is None

    def record(self, line: str) -> None:
        self._line = line

    def recall(self) -> Optional[str]:
        return self._line

    def clear(self) -> None:
        self._line = None

    def substitute(self, line: str) -> tuple[str, bool]:
        """Resolve ``!!`` against the slot, recording any other line.

        Returns the line to run and whether it came from a recall. Raises
        NoHistory when ``!!`` is given and nothing has been entered yet.
        """
        if line != RECALL:
            self.record(line)
            return line, False
        recalled = self.recall()
        if recalled is None:
            raise NoHistory()
        return recalled, True
