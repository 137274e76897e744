from __future__ import annotations

from typing import Iterable, Protocol


class _HasId(Protocol):
    id: int


class CodeSequencer:
    """Running id counter for one catalog collection.

    ``next()`` pre-increments, so a sequencer seeded with ``2`` hands out ``3``
    first. After a bulk replace the counter is re-derived from the records,
    never carried over from before the load.
    """

    def __init__(self, seed: int = 0) -> None:
        if seed < 0:
            raise ValueError(f"sequencer seed must be >= 0, got: {seed}")
        self._seed = seed
        self._counter = seed

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def current(self) -> int:
        return self._counter

    def next(self) -> int:
        self._counter += 1
        return self._counter

    def peek(self) -> int:
        return self._counter + 1

    def reset_from(self, records: Iterable[_HasId], *, empty_seed: int = 0) -> int:
        """Reset the counter to ``max(ids)`` of *records*.

        Returns:
            The new counter value (``empty_seed`` when *records* is empty).
        """
        self._counter = max((record.id for record in records), default=empty_seed)
        return self._counter

    def restart(self, seed: int) -> None:
        """Count from *seed* again, as a freshly built sequencer would."""
        if seed < 0:
            raise ValueError(f"sequencer seed must be >= 0, got: {seed}")
        self._seed = seed
        self._counter = seed
