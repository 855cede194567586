"""Column sort state for tables."""

from typing import Any, Callable, Sequence

DEFAULT_CYCLE: tuple[str | None, ...] = ("desc", "asc")
CYCLE_WITH_UNSORTED: tuple[str | None, ...] = ("desc", "asc", None)


class SortState:
    """Which column a table is sorted by, and in which direction.

    Toggling the active column advances through ``cycle``; a ``None`` step
    means unsorted (original order). Toggling any other column starts it at
    the first step of the cycle.
    """

    def __init__(
        self,
        key: str | None = None,
        direction: str | None = "desc",
        cycle: Sequence[str | None] = DEFAULT_CYCLE,
    ) -> None:
        self.cycle = tuple(cycle)
        self.key = key
        self.direction = direction if key else None

    @property
    def active(self) -> bool:
        return self.key is not None and self.direction is not None

    @property
    def ascending(self) -> bool:
        return self.direction == "asc"

    def toggle(self, key: str) -> None:
        if key == self.key and self.direction in self.cycle:
            i = self.cycle.index(self.direction)
            self.direction = self.cycle[(i + 1) % len(self.cycle)]
            if self.direction is None:
                self.key = None
        else:
            self.key = key
            self.direction = self.cycle[0]

    def indicator(self, key: str) -> str:
        """Arrow shown next to a column header."""
        if key != self.key or not self.active:
            return ""
        return "▲" if self.ascending else "▼"

    def apply(self, rows: list[Any], value: Callable[[Any, str], Any]) -> list[Any]:
        """
        Sort rows client-side by the active column.

        Missing values sort as the smallest value (last when descending).
        The sort is stable, so ties keep their loaded order.
        """
        if not self.active:
            return list(rows)

        def sort_key(row: Any) -> tuple:
            v = value(row, self.key)
            return (0, 0) if v is None else (1, v)

        return sorted(rows, key=sort_key, reverse=not self.ascending)

    def __repr__(self) -> str:
        return f"SortState(key={self.key!r}, direction={self.direction!r})"
