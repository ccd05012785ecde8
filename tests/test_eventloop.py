import socket

import pytest

from rasqueue.eventloop import (
    NOMORE,
    EventLoop,
    EventLoopError,
    ProcessFlags,
    wait,
)
from rasqueue.poller import EventMask

NOW = ProcessFlags.TIME_EVENTS | ProcessFlags.DONT_WAIT


@pytest.fixture
def loop():
    with EventLoop() as lp:
        yield lp


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


def test_time_event_ids_start_at_zero(loop):
    first = loop.create_time_event(1000, lambda *a: NOMORE)
    second = loop.create_time_event(1000, lambda *a: NOMORE)
    assert (first, second) == (0, 1)


def test_time_event_fires_once_and_finalizes(loop):
    calls = []
    finalized = []
    event_id = loop.create_time_event(
        0, lambda lp, i, data: calls.append((i, data)) or NOMORE,
        "payload", lambda lp, data: finalized.append(data))
    assert loop.process_events(NOW) == 1
    assert calls == [(event_id, "payload")]
    assert finalized == ["payload"]
    assert loop.process_events(NOW) == 0


def test_delete_time_event_runs_finalizer(loop):
    finalized = []
    event_id = loop.create_time_event(
        10000, lambda *a: NOMORE, "x", lambda lp, data: finalized.append(data))
    loop.delete_time_event(event_id)
    assert finalized == ["x"]
    with pytest.raises(EventLoopError):
        loop.delete_time_event(event_id)


def test_delete_unknown_time_event(loop):
    with pytest.raises(EventLoopError):
        loop.delete_time_event(42)


def test_events_created_by_handler_wait_for_next_pass(loop):
    fired = []

    def child(lp, i, data):
        fired.append("child")
        return NOMORE

    def parent(lp, i, data):
        fired.append("parent")
        lp.create_time_event(0, child)
        return NOMORE

    loop.create_time_event(0, parent)
    assert loop.process_events(NOW) == 1
    assert fired == ["parent"]
    assert loop.process_events(NOW) == 1
    assert fired == ["parent", "child"]


def test_not_due_time_event_not_fired(loop):
    calls = []
    loop.create_time_event(60000, lambda *a: calls.append(1) or NOMORE)
    assert loop.process_events(NOW) == 0
    assert calls == []


def test_no_flags_does_nothing(loop):
    calls = []
    loop.create_time_event(0, lambda *a: calls.append(1) or NOMORE)
    assert loop.process_events(ProcessFlags.NONE) == 0
    assert calls == []


def test_repeating_timer_and_run_stop(loop):
    ticks = []
    sleeps = []

    def tick(lp, i, data):
        ticks.append(i)
        if len(ticks) == 3:
            lp.stop()
            return NOMORE
        return 1

    loop.create_time_event(1, tick)
    loop.set_before_sleep(lambda lp: sleeps.append(1))
    loop.run()
    assert len(ticks) == 3
    assert len(set(ticks)) == 1
    assert len(sleeps) >= 3


def test_file_event_readable(loop, pair):
    a, b = pair
    seen = []
    loop.create_file_event(
        a.fileno(), EventMask.READABLE,
        lambda lp, fd, data, mask: seen.append((fd, data, mask)), "ctx")
    assert loop.process_events(ProcessFlags.FILE_EVENTS | ProcessFlags.DONT_WAIT) == 0
    b.send(b"x")
    assert loop.process_events(ProcessFlags.ALL_EVENTS | ProcessFlags.DONT_WAIT) == 1
    assert len(seen) == 1
    fd, data, mask = seen[0]
    assert fd == a.fileno()
    assert data == "ctx"
    assert mask & EventMask.READABLE


def test_get_and_delete_file_events(loop, pair):
    a, _ = pair
    fd = a.fileno()
    proc = lambda *args: None
    loop.create_file_event(fd, EventMask.READABLE, proc)
    loop.create_file_event(fd, EventMask.WRITABLE, proc)
    assert loop.get_file_events(fd) == EventMask.READABLE | EventMask.WRITABLE
    assert loop.maxfd == fd
    loop.delete_file_event(fd, EventMask.READABLE)
    assert loop.get_file_events(fd) == EventMask.WRITABLE
    loop.delete_file_event(fd, EventMask.WRITABLE)
    assert loop.get_file_events(fd) == EventMask.NONE
    assert loop.maxfd == -1


def test_same_proc_for_both_masks(loop, pair):
    a, b = pair
    b.send(b"x")
    masks = []
    loop.create_file_event(
        a.fileno(), EventMask.READABLE | EventMask.WRITABLE,
        lambda lp, fd, data, mask: masks.append(mask))
    loop.process_events(ProcessFlags.FILE_EVENTS | ProcessFlags.DONT_WAIT)
    combined = EventMask.NONE
    for mask in masks:
        combined |= mask
    assert combined == EventMask.READABLE | EventMask.WRITABLE


def test_fd_beyond_setsize(pair):
    with EventLoop(setsize=1) as lp:
        with pytest.raises(EventLoopError):
            lp.create_file_event(pair[0].fileno(), EventMask.READABLE,
                                 lambda *a: None)
        assert lp.get_file_events(pair[0].fileno()) == EventMask.NONE


def test_wait_writable_and_timeout(pair):
    a, _ = pair
    assert wait(a.fileno(), EventMask.WRITABLE, 100) == EventMask.WRITABLE
    assert wait(a.fileno(), EventMask.READABLE, 10) == EventMask.NONE


def test_api_name(loop):
    assert loop.api_name() in {"epoll", "kqueue", "select"}