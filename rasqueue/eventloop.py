"""An event loop dispatching file readiness and timer callbacks."""

from __future__ import annotations

import enum
import select
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from rasqueue.poller import SETSIZE, EventMask, Poller

NOMORE = -1

FileProc = Callable[["EventLoop", int, Any, EventMask], None]
TimeProc = Callable[["EventLoop", int, Any], Optional[int]]
FinalizerProc = Callable[["EventLoop", Any], None]
BeforeSleepProc = Callable[["EventLoop"], None]


class ProcessFlags(enum.IntFlag):
    """Which kinds of events ``process_events`` handles, and how."""

    NONE = 0
    FILE_EVENTS = 1
    TIME_EVENTS = 2
    ALL_EVENTS = 3
    DONT_WAIT = 4


class EventLoopError(Exception):
    """An event could not be registered or found."""


@dataclass
class _FileEvent:
    mask: EventMask = EventMask.NONE
    rproc: Optional[FileProc] = None
    wproc: Optional[FileProc] = None
    client_data: Any = None


@dataclass
class _TimeEvent:
    id: int
    when: float
    proc: TimeProc
    finalizer: Optional[FinalizerProc]
    client_data: Any


def _clock() -> float:
    return time.monotonic()


def _deadline(milliseconds: float) -> float:
    return _clock() + milliseconds / 1000.0


class EventLoop:
    """Runs file and time event callbacks until stopped.

    A time callback returns the number of milliseconds after which it
    fires again, or ``NOMORE`` (or None) to be removed.
    """

    def __init__(self, setsize: int = SETSIZE) -> None:
        self.setsize = setsize
        self._poller = Poller()
        self._events: Dict[int, _FileEvent] = {}
        self._timers: List[_TimeEvent] = []
        self._next_id = 0
        self._stop = False
        self.maxfd = -1
        self._before_sleep: Optional[BeforeSleepProc] = None

    def __enter__(self) -> "EventLoop":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the polling resources."""
        self._poller.close()

    def stop(self) -> None:
        """Make ``run`` return after the current iteration."""
        self._stop = True

    def create_file_event(self, fd: int, mask: EventMask, proc: FileProc,
                          client_data: Any = None) -> None:
        """Call ``proc`` whenever ``fd`` is ready for ``mask``."""
        if fd >= self.setsize:
            raise EventLoopError(f"file descriptor {fd} exceeds {self.setsize}")
        mask = EventMask(mask)
        fe = self._events.get(fd)
        old = fe.mask if fe is not None else EventMask.NONE
        try:
            self._poller.add(fd, mask, old)
        except OSError as exc:
            raise EventLoopError(f"cannot watch file descriptor {fd}: {exc}") from exc
        if fe is None:
            fe = self._events[fd] = _FileEvent()
        fe.mask |= mask
        if mask & EventMask.READABLE:
            fe.rproc = proc
        if mask & EventMask.WRITABLE:
            fe.wproc = proc
        fe.client_data = client_data
        if fd > self.maxfd:
            self.maxfd = fd

    def delete_file_event(self, fd: int, mask: EventMask) -> None:
        """Stop calling back for ``mask`` on ``fd``."""
        if fd >= self.setsize:
            return
        fe = self._events.get(fd)
        if fe is None or fe.mask == EventMask.NONE:
            return
        old = fe.mask
        fe.mask = EventMask(fe.mask & ~EventMask(mask))
        if fe.mask == EventMask.NONE:
            del self._events[fd]
            if fd == self.maxfd:
                self.maxfd = max(
                    (f for f, e in self._events.items() if e.mask != EventMask.NONE),
                    default=-1)
        self._poller.delete(fd, EventMask(mask), old)

    def get_file_events(self, fd: int) -> EventMask:
        """The mask currently watched for ``fd``."""
        if fd >= self.setsize:
            return EventMask.NONE
        fe = self._events.get(fd)
        return fe.mask if fe is not None else EventMask.NONE

    def create_time_event(self, milliseconds: float, proc: TimeProc,
                          client_data: Any = None,
                          finalizer: Optional[FinalizerProc] = None) -> int:
        """Schedule ``proc`` after ``milliseconds``; return the event id."""
        event_id = self._next_id
        self._next_id += 1
        self._timers.insert(0, _TimeEvent(event_id, _deadline(milliseconds),
                                          proc, finalizer, client_data))
        return event_id

    def _remove_timer(self, event_id: int) -> bool:
        for position, te in enumerate(self._timers):
            if te.id == event_id:
                del self._timers[position]
                if te.finalizer is not None:
                    te.finalizer(self, te.client_data)
                return True
        return False

    def delete_time_event(self, event_id: int) -> None:
        """Remove a time event, running its finalizer."""
        if not self._remove_timer(event_id):
            raise EventLoopError(f"no time event with id {event_id}")

    def _nearest_timer(self) -> Optional[_TimeEvent]:
        return min(self._timers, key=lambda te: te.when, default=None)

    def _process_time_events(self) -> int:
        processed = 0
        max_id = self._next_id - 1
        position = 0
        while position < len(self._timers):
            te = self._timers[position]
            if te.id > max_id or _clock() < te.when:
                position += 1
                continue
            result = te.proc(self, te.id, te.client_data)
            processed += 1
            if result is None or result == NOMORE:
                self._remove_timer(te.id)
            else:
                te.when = _deadline(result)
            # Handlers may have changed the list: start over from the head.
            position = 0
        return processed

    def process_events(self, flags: ProcessFlags = ProcessFlags.ALL_EVENTS) -> int:
        """Handle pending events and return how many were processed.

        Without ``DONT_WAIT`` this sleeps until a file event fires or the
        nearest time event is due.
        """
        flags = ProcessFlags(flags)
        want_time = bool(flags & ProcessFlags.TIME_EVENTS)
        want_files = bool(flags & ProcessFlags.FILE_EVENTS)
        dont_wait = bool(flags & ProcessFlags.DONT_WAIT)
        if not want_time and not want_files:
            return 0

        processed = 0
        if self.maxfd != -1 or (want_time and not dont_wait):
            shortest = self._nearest_timer() if want_time and not dont_wait else None
            if shortest is not None:
                timeout: Optional[float] = max(0.0, shortest.when - _clock())
            elif dont_wait:
                timeout = 0.0
            else:
                timeout = None
            for fd, mask in self._poller.poll(timeout):
                fe = self._events.get(fd)
                if fe is not None:
                    rfired = False
                    if fe.mask & mask & EventMask.READABLE:
                        rfired = True
                        fe.rproc(self, fd, fe.client_data, mask)
                    if fe.mask & mask & EventMask.WRITABLE:
                        if not rfired or fe.wproc != fe.rproc:
                            fe.wproc(self, fd, fe.client_data, mask)
                processed += 1
        if want_time:
            processed += self._process_time_events()
        return processed

    def run(self) -> None:
        """Process events until ``stop`` is called."""
        self._stop = False
        while not self._stop:
            if self._before_sleep is not None:
                self._before_sleep(self)
            self.process_events(ProcessFlags.ALL_EVENTS)

    def set_before_sleep(self, proc: Optional[BeforeSleepProc]) -> None:
        """Call ``proc`` before each iteration of ``run``."""
        self._before_sleep = proc

    def api_name(self) -> str:
        """Name of the multiplexing call in use."""
        return self._poller.name()


def wait(fd: int, mask: EventMask, milliseconds: float) -> EventMask:
    """Wait up to ``milliseconds`` for ``fd`` to become ready for ``mask``.

    Returns the readiness found, ``EventMask.NONE`` on timeout.
    """
    mask = EventMask(mask)
    readers = [fd] if mask & EventMask.READABLE else []
    writers = [fd] if mask & EventMask.WRITABLE else []
    readable, writable, _ = select.select(readers, writers, [], milliseconds / 1000.0)
    result = EventMask.NONE
    if fd in readable:
        result |= EventMask.READABLE
    if fd in writable:
        result |= EventMask.WRITABLE
    return result