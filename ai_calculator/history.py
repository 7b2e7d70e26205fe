"""Session-scoped calculation history."""

from collections import deque

from .models import HistoryEntry


class CalculationHistory:
    """Newest-first list of successful calculations, bounded in size.

    The history lives only as long as the session that owns it.
    """

    def __init__(self, max_entries: int = 20) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)

    def record(self, input_text: str, output: str) -> HistoryEntry:
        """Add a calculation; the oldest entry is evicted once full."""
        entry = HistoryEntry(input=input_text, output=output)
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> list[HistoryEntry]:
        """Entries, newest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)
