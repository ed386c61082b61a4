"""Persistent, append-only stage sequence with structural sharing."""

from typing import Generic, Iterator, Optional, Tuple, TypeVar

S = TypeVar("S")


class StepChain(Generic[S]):
    """
    Immutable singly-linked sequence of stages.

    ``append`` returns a new chain whose tail is the existing chain, so two
    pipelines built from a common prefix share it without copying and
    neither can observe stages appended to the other.
    """

    __slots__ = ("_last", "_previous", "_length", "_items")

    def __init__(self, last: Optional[S] = None, previous: Optional["StepChain[S]"] = None):
        if previous is None and last is not None:
            previous = StepChain()
        self._last = last
        self._previous = previous
        self._length = 0 if previous is None else len(previous) + 1
        self._items: Optional[Tuple[S, ...]] = None

    def append(self, stage: S) -> "StepChain[S]":
        """Return a new chain with stage appended; this chain is unchanged."""
        return StepChain(stage, self)

    def as_tuple(self) -> Tuple[S, ...]:
        """Stages in execution order (materialized once, then cached)."""
        if self._items is None:
            items = []
            node: Optional[StepChain[S]] = self
            while node is not None and node._previous is not None:
                items.append(node._last)
                node = node._previous
            items.reverse()
            self._items = tuple(items)
        return self._items

    def __iter__(self) -> Iterator[S]:
        return iter(self.as_tuple())

    def __len__(self) -> int:
        return self._length

    def __bool__(self) -> bool:
        return self._length > 0

    def __repr__(self) -> str:
        return f"StepChain(length={self._length})"
