"""A double-ended list whose values are released through a destroy callback."""

from __future__ import annotations

from collections import deque
from typing import Any, Callable, Iterator, Optional

CACHES_INIT_SIZE = 512

DestroyFunction = Callable[[Any], None]


class DoubleList:
    """Ordered sequence with cheap access at both ends.

    Every value that leaves the list without being handed back to the
    caller is passed to ``destroy``.  Indexes may be negative, counting
    from the tail (``-1`` is the last value).
    """

    def __init__(self, destroy: Optional[DestroyFunction],
                 cache_size: int = CACHES_INIT_SIZE) -> None:
        if destroy is None or not callable(destroy):
            raise TypeError("DoubleList destroy function undefined")
        self._destroy = destroy
        self.cache_size = cache_size if cache_size > 0 else 0
        self._items: deque[Any] = deque()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._items)!r})"

    def add_head(self, value: Any) -> None:
        """Put ``value`` in front of every other value."""
        self._items.appendleft(value)

    def add_tail(self, value: Any) -> None:
        """Put ``value`` after every other value."""
        self._items.append(value)

    def insert(self, position: int, value: Any) -> None:
        """Insert ``value`` before the value now at ``position``.

        ``position`` equal to the length appends at the tail.  Raises
        IndexError when no value sits at ``position``.
        """
        size = len(self._items)
        if position == 0:
            self.add_head(value)
        elif position == size:
            self.add_tail(value)
        elif -size <= position < size:
            self._items.insert(position, value)
        else:
            raise IndexError(f"position {position} out of range")

    def peek_head(self) -> Any:
        """Return the first value without removing it."""
        if not self._items:
            raise IndexError("peek from an empty list")
        return self._items[0]

    def peek_tail(self) -> Any:
        """Return the last value without removing it."""
        if not self._items:
            raise IndexError("peek from an empty list")
        return self._items[-1]

    def get(self, index: int) -> Any:
        """Return the value at ``index``."""
        if not -len(self._items) <= index < len(self._items):
            raise IndexError(f"index {index} out of range")
        return self._items[index]

    def _release(self, value: Any, destroy: bool) -> Any:
        if destroy:
            self._destroy(value)
            return None
        return value

    def pop_head(self, destroy: bool = False) -> Any:
        """Remove the first value; return it, or destroy it when asked."""
        if not self._items:
            raise IndexError("pop from an empty list")
        return self._release(self._items.popleft(), destroy)

    def pop_tail(self, destroy: bool = False) -> Any:
        """Remove the last value; return it, or destroy it when asked."""
        if not self._items:
            raise IndexError("pop from an empty list")
        return self._release(self._items.pop(), destroy)

    def pop_at(self, index: int, destroy: bool = False) -> Any:
        """Remove the value at ``index``; return it, or destroy it when asked."""
        value = self.get(index)
        del self._items[index]
        return self._release(value, destroy)

    def clear(self) -> None:
        """Destroy every value, head first, and leave the list empty."""
        while self._items:
            self._destroy(self._items.popleft())