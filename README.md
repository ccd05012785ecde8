# rasqueue

Pure-Python building blocks for a small event-driven queue server. It uses
only the standard library.

## Modules

- `rasqueue.eventloop`: `EventLoop`, a single-threaded loop that runs
  callbacks for file events (readable or writable descriptors) and for
  timers. `create_time_event(milliseconds, proc, client_data, finalizer)`
  returns an event id. The timer callback returns how many milliseconds
  until it fires again, or `-1` (`NOMORE`) or `None` to remove itself.
  `process_events(flags)` takes `ProcessFlags` (`FILE_EVENTS`,
  `TIME_EVENTS`, `ALL_EVENTS`, `DONT_WAIT`) and returns the number of
  events it handled. `run()` loops until `stop()` is called, and calls the
  function set with `set_before_sleep` before each pass. The loop works
  as a context manager, and `close()` releases the poller. Errors raise
  `EventLoopError`. `wait(fd, mask, milliseconds)` waits for one
  descriptor and returns the readiness it found.
- `rasqueue.poller`: `Poller` watches descriptors through epoll, kqueue
  or select, taking the first one the platform has. `name()` tells you
  which one it chose. `EventMask` holds the `READABLE` and `WRITABLE` flags.
- `rasqueue.dlist`: `DoubleList`, a sequence with cheap access at both
  ends. It takes a destroy callback, which receives a value when it is
  popped with `destroy=True` and every value passed to `clear()`. Negative
  indexes count from the tail. A missing index raises `IndexError`.
- `rasqueue.bit32`: bitwise operations on 32-bit unsigned numbers:
  `band`, `bor`, `bxor`, `btest`, `bnot`, `lshift`, `rshift`, `arshift`,
  `lrotate`, `rrotate`, `extract` and `replace`. An invalid field or
  width raises `BitFieldError`.
- `rasqueue.serverconfig`: `parse_config(text, config)` and
  `load_config(path, config)` read a configuration file into a
  `ServerConfig`. `load_config` reads stdin when the path is `-`. A bad
  line raises `ConfigError`, which names the line. Related helpers are
  `split_args`, which splits a line with quoting, and `yes_no`.
- `rasqueue.configcommand`: `config_get`, `config_set` and
  `config_command`, which handle `CONFIG GET` / `SET` / `RESETSTAT`
  against a `ServerConfig`. GET takes a glob pattern and returns a list of
  `(name, value)` pairs. SET and RESETSTAT return `"OK"`. A rejected
  request raises `ConfigCommandError`.

## Example

```python
from rasqueue.eventloop import EventLoop, ProcessFlags

with EventLoop(1024) as loop:
    fired = []

    def tick(loop, event_id, data):
        fired.append(data)
        return -1  # do not reschedule

    loop.create_time_event(10, tick, "hello", None)
    loop.process_events(ProcessFlags.ALL_EVENTS)
```

```python
from rasqueue import bit32

bit32.band(0xFF, 0x0F)      # 15
bit32.extract(0xF0, 4, 4)   # 15
```

```python
from rasqueue.serverconfig import parse_config
from rasqueue.configcommand import config_command

config = parse_config("port 7000\nsave 900 1\n")
config_command(config, ["CONFIG", "GET", "save"])   # [("save", "900 1")]
```

## What it does not do

The package supplies the parts, not a server. It has no network
listener, no message queue and no command-line program.

`ServerConfig.commands` starts empty. The `rename-command` directive only
acts on entries that the caller puts into it.