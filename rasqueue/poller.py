"""Readiness polling over the best multiplexing call the platform offers.

The backend is chosen in order of preference: ``epoll`` where available,
then ``kqueue``, and ``select`` everywhere else.
"""

from __future__ import annotations

import contextlib
import enum
import select
import time
from typing import List, Optional, Set, Tuple

SETSIZE = 1024 * 10

FiredEvent = Tuple[int, "EventMask"]


class EventMask(enum.IntFlag):
    """Kinds of readiness a file descriptor can be watched for."""

    NONE = 0
    READABLE = 1
    WRITABLE = 2


def _timeout_seconds(timeout: Optional[float]) -> Optional[float]:
    if timeout is None:
        return None
    return max(0.0, float(timeout))


class _EpollBackend:
    NAME = "epoll"

    def __init__(self) -> None:
        self._epoll = select.epoll()

    @staticmethod
    def _events(mask: EventMask) -> int:
        events = 0
        if mask & EventMask.READABLE:
            events |= select.EPOLLIN
        if mask & EventMask.WRITABLE:
            events |= select.EPOLLOUT
        return events

    def add(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        events = self._events(mask | old_mask)
        if old_mask == EventMask.NONE:
            self._epoll.register(fd, events)
        else:
            self._epoll.modify(fd, events)

    def delete(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        remaining = EventMask(old_mask & ~mask)
        with contextlib.suppress(OSError):
            if remaining != EventMask.NONE:
                self._epoll.modify(fd, self._events(remaining))
            else:
                self._epoll.unregister(fd)

    def poll(self, timeout: Optional[float]) -> List[FiredEvent]:
        seconds = -1 if timeout is None else timeout
        fired = []
        for fd, events in self._epoll.poll(seconds, SETSIZE):
            mask = EventMask.NONE
            if events & select.EPOLLIN:
                mask |= EventMask.READABLE
            if events & select.EPOLLOUT:
                mask |= EventMask.WRITABLE
            fired.append((fd, mask))
        return fired

    def close(self) -> None:
        self._epoll.close()


class _KqueueBackend:
    NAME = "kqueue"

    def __init__(self) -> None:
        self._kqueue = select.kqueue()

    def _control(self, fd: int, mask: EventMask, flags: int) -> None:
        if mask & EventMask.READABLE:
            event = select.kevent(fd, select.KQ_FILTER_READ, flags)
            self._kqueue.control([event], 0, 0)
        if mask & EventMask.WRITABLE:
            event = select.kevent(fd, select.KQ_FILTER_WRITE, flags)
            self._kqueue.control([event], 0, 0)

    def add(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        self._control(fd, mask, select.KQ_EV_ADD)

    def delete(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        for bit in (EventMask.READABLE, EventMask.WRITABLE):
            if mask & bit:
                with contextlib.suppress(OSError):
                    self._control(fd, bit, select.KQ_EV_DELETE)

    def poll(self, timeout: Optional[float]) -> List[FiredEvent]:
        fired = []
        for event in self._kqueue.control(None, SETSIZE, timeout):
            mask = EventMask.NONE
            if event.filter == select.KQ_FILTER_READ:
                mask |= EventMask.READABLE
            if event.filter == select.KQ_FILTER_WRITE:
                mask |= EventMask.WRITABLE
            fired.append((event.ident, mask))
        return fired

    def close(self) -> None:
        self._kqueue.close()


class _SelectBackend:
    NAME = "select"

    def __init__(self) -> None:
        self._readers: Set[int] = set()
        self._writers: Set[int] = set()

    def add(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        if mask & EventMask.READABLE:
            self._readers.add(fd)
        if mask & EventMask.WRITABLE:
            self._writers.add(fd)

    def delete(self, fd: int, mask: EventMask, old_mask: EventMask) -> None:
        if mask & EventMask.READABLE:
            self._readers.discard(fd)
        if mask & EventMask.WRITABLE:
            self._writers.discard(fd)

    def poll(self, timeout: Optional[float]) -> List[FiredEvent]:
        watched = self._readers | self._writers
        if not watched and timeout is not None:
            time.sleep(timeout)
            return []
        readable, writable, _ = select.select(
            sorted(self._readers), sorted(self._writers), [], timeout)
        if not readable and not writable:
            return []
        ready_r, ready_w = set(readable), set(writable)
        # Every watched descriptor is reported once something is ready,
        # possibly with an empty mask.
        fired = []
        for fd in sorted(watched):
            mask = EventMask.NONE
            if fd in self._readers and fd in ready_r:
                mask |= EventMask.READABLE
            if fd in self._writers and fd in ready_w:
                mask |= EventMask.WRITABLE
            fired.append((fd, mask))
        return fired

    def close(self) -> None:
        self._readers.clear()
        self._writers.clear()


def _best_backend():
    if hasattr(select, "epoll"):
        return _EpollBackend()
    if hasattr(select, "kqueue"):
        return _KqueueBackend()
    return _SelectBackend()


class Poller:
    """Watches file descriptors for readability and writability."""

    def __init__(self) -> None:
        self._backend = _best_backend()
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise ValueError("poller is closed")

    @staticmethod
    def _check_fd(fd: int) -> None:
        if fd < 0:
            raise ValueError(f"invalid file descriptor {fd}")
        if fd >= SETSIZE:
            raise ValueError(f"file descriptor {fd} exceeds {SETSIZE}")

    def add(self, fd: int, mask: EventMask,
            old_mask: EventMask = EventMask.NONE) -> None:
        """Start watching ``fd`` for ``mask``, on top of ``old_mask``.

        Raises OSError when the system refuses the registration.
        """
        self._check_open()
        self._check_fd(fd)
        self._backend.add(fd, EventMask(mask), EventMask(old_mask))

    def delete(self, fd: int, mask: EventMask,
               old_mask: EventMask = EventMask.NONE) -> None:
        """Stop watching ``fd`` for ``mask``; ``old_mask`` is what was watched."""
        self._check_open()
        self._check_fd(fd)
        self._backend.delete(fd, EventMask(mask), EventMask(old_mask))

    def poll(self, timeout: Optional[float] = None) -> List[FiredEvent]:
        """Wait up to ``timeout`` seconds (forever if None) for readiness.

        Returns a list of ``(fd, mask)`` pairs for the descriptors fired.
        """
        self._check_open()
        return self._backend.poll(_timeout_seconds(timeout))

    def close(self) -> None:
        """Release the underlying polling resources."""
        if not self._closed:
            self._backend.close()
            self._closed = True

    def name(self) -> str:
        """Name of the multiplexing call in use."""
        return self._backend.NAME