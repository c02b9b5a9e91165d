import logging
from typing import Optional


class SelectionController:
    """Holds the active index into the visible set.

    The index refers to a position, not to a record, so callers pass the
    current visible-set length ``n`` to every transition. ``None`` means
    "nothing selected" and is the only value allowed while ``n == 0``.
    """

    def __init__(self, index: Optional[int] = None):
        self.index = index

    # ------------------------------------------------------------------
    # Pure transitions on (index, n)
    # ------------------------------------------------------------------

    @staticmethod
    def clamped(index: Optional[int], n: int) -> Optional[int]:
        if n <= 0:
            return None
        if index is None:
            return 0
        return max(0, min(index, n - 1))

    @staticmethod
    def stepped(index: Optional[int], n: int, step: int) -> Optional[int]:
        if n <= 0:
            return None
        if index is None:
            return 0
        return max(0, min(index + step, n - 1))

    # ------------------------------------------------------------------
    # Stateful navigation
    # ------------------------------------------------------------------

    def _set(self, index: Optional[int]) -> Optional[int]:
        if index != self.index:
            logging.debug(f"Selection index {self.index} -> {index}")
        self.index = index
        return index

    def clamp(self, n: int) -> Optional[int]:
        """Pull the index back into ``[0, n-1]`` after the visible set changed size."""
        return self._set(self.clamped(self.index, n))

    def select(self, index: int, n: int) -> Optional[int]:
        return self._set(self.clamped(index, n))

    def next(self, n: int) -> Optional[int]:
        return self._set(self.stepped(self.index, n, 1))

    def prev(self, n: int) -> Optional[int]:
        return self._set(self.stepped(self.index, n, -1))

    def next_row(self, n: int, columns: int) -> Optional[int]:
        return self._set(self.stepped(self.index, n, max(1, columns)))

    def prev_row(self, n: int, columns: int) -> Optional[int]:
        return self._set(self.stepped(self.index, n, -max(1, columns)))
