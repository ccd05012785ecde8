"""The CONFIG command: read and change server settings at run time."""

from __future__ import annotations

import os
import re
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from rasqueue.serverconfig import (
    AppendFsync,
    LogLevel,
    MaxMemoryPolicy,
    ServerConfig,
    yes_no,
)

LLONG_MAX = (1 << 63) - 1
LLONG_MIN = -(1 << 63)
LONG_MAX = LLONG_MAX
UINT_MASK = 0xFFFFFFFF

Reply = Union[str, List[Tuple[str, Optional[str]]]]


class ConfigCommandError(Exception):
    """A CONFIG request was rejected; the message is the error reply."""


def _parse_long_long(text: str) -> Optional[int]:
    """Read a whole string as a signed 64-bit integer, or None."""
    if text == "":
        return 0
    if text[0].isspace():
        return None
    match = re.fullmatch(r"[+-]?[0-9]+", text)
    if match is None:
        return None
    value = int(text)
    if not LLONG_MIN <= value <= LLONG_MAX:
        return None
    return value


def _strtoll_whole(text: str) -> Optional[int]:
    """Read ``text`` as strtoll does, failing unless it is all consumed."""
    if text == "":
        return 0
    match = re.fullmatch(r"[ \t\n\v\f\r]*([+-]?[0-9]+)", text)
    if match is None:
        return None
    return max(LLONG_MIN, min(LLONG_MAX, int(match.group(1))))


def _glob_regex(pattern: str) -> "re.Pattern[str]":
    parts: List[str] = []
    pos, end = 0, len(pattern)
    while pos < end:
        ch = pattern[pos]
        if ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        elif ch == "\\" and pos + 1 < end:
            pos += 1
            parts.append(re.escape(pattern[pos]))
        elif ch == "[":
            pos += 1
            negate = pos < end and pattern[pos] == "^"
            if negate:
                pos += 1
            items: List[str] = []
            while pos < end and pattern[pos] != "]":
                if pattern[pos] == "\\" and pos + 1 < end:
                    pos += 1
                    items.append(re.escape(pattern[pos]))
                elif pos + 2 < end and pattern[pos + 1] == "-":
                    start, stop = pattern[pos], pattern[pos + 2]
                    if start > stop:
                        start, stop = stop, start
                    items.append(f"{re.escape(start)}-{re.escape(stop)}")
                    pos += 2
                else:
                    items.append(re.escape(pattern[pos]))
                pos += 1
            if items:
                parts.append(f"[{'^' if negate else ''}{''.join(items)}]")
            else:
                parts.append("." if negate else "(?!)")
        else:
            parts.append(re.escape(ch))
        pos += 1
    return re.compile("".join(parts), re.DOTALL)


def _matches(pattern: str, name: str) -> bool:
    return _glob_regex(pattern).fullmatch(name) is not None


class _BadFormat(Exception):
    pass


def _number(value: str, minimum: Optional[int] = 0,
            maximum: Optional[int] = None) -> int:
    number = _parse_long_long(value)
    if number is None:
        raise _BadFormat
    if minimum is not None and number < minimum:
        raise _BadFormat
    if maximum is not None and number > maximum:
        raise _BadFormat
    return number


def _flag(value: str) -> bool:
    try:
        return yes_no(value)
    except ValueError:
        raise _BadFormat from None


def _enum(kind, value: str):
    try:
        return kind.parse(value)
    except ValueError:
        raise _BadFormat from None


_NUMERIC: Dict[str, Tuple[str, Optional[int], Optional[int]]] = {
    "maxmemory": ("maxmemory", 0, None),
    "maxmemory-samples": ("maxmemory_samples", 1, None),
    "timeout": ("maxidletime", 0, LONG_MAX),
    "auto-aof-rewrite-percentage": ("auto_aofrewrite_perc", 0, None),
    "auto-aof-rewrite-min-size": ("auto_aofrewrite_min_size", 0, None),
    "hash-max-zipmap-entries": ("hash_max_zipmap_entries", 0, None),
    "hash-max-zipmap-value": ("hash_max_zipmap_value", 0, None),
    "list-max-ziplist-entries": ("list_max_ziplist_entries", 0, None),
    "list-max-ziplist-value": ("list_max_ziplist_value", 0, None),
    "set-max-intset-entries": ("set_max_intset_entries", 0, None),
    "zset-max-ziplist-entries": ("zset_max_ziplist_entries", 0, None),
    "zset-max-ziplist-value": ("zset_max_ziplist_value", 0, None),
    "slowlog-log-slower-than": ("slowlog_log_slower_than", None, None),
}

_FLAGS: Dict[str, str] = {
    "no-appendfsync-on-rewrite": "no_appendfsync_on_rewrite",
    "appendonly": "appendonly",
    "slave-serve-stale-data": "repl_serve_stale_data",
}

_ENUMS: Dict[str, Tuple[str, type]] = {
    "maxmemory-policy": ("maxmemory_policy", MaxMemoryPolicy),
    "appendfsync": ("appendfsync", AppendFsync),
    "loglevel": ("verbosity", LogLevel),
}


def _set_save(config: ServerConfig, value: str) -> None:
    tokens = value.split(" ") if value else []
    if len(tokens) % 2:
        raise _BadFormat
    numbers = []
    for position, token in enumerate(tokens):
        number = _strtoll_whole(token)
        least = 1 if position % 2 == 0 else 0
        if number is None or number < least:
            raise _BadFormat
        numbers.append(number)
    config.reset_save_params()
    for seconds, changes in zip(numbers[::2], numbers[1::2]):
        config.append_save_param(seconds, changes)


def config_set(config: ServerConfig, name: str, value: str) -> None:
    """Change the setting ``name`` to ``value``.

    Raises ConfigCommandError for an unknown setting or a bad value.
    """
    key = name.lower()
    try:
        if key == "dbfilename":
            config.dbfilename = value
        elif key == "requirepass":
            config.requirepass = value or None
        elif key == "masterauth":
            config.masterauth = value
        elif key in _NUMERIC:
            attr, minimum, maximum = _NUMERIC[key]
            setattr(config, attr, _number(value, minimum, maximum))
        elif key == "slowlog-max-len":
            config.slowlog_max_len = _number(value, 0) & UINT_MASK
        elif key in _FLAGS:
            setattr(config, _FLAGS[key], _flag(value))
        elif key in _ENUMS:
            attr, kind = _ENUMS[key]
            setattr(config, attr, _enum(kind, value))
        elif key == "save":
            _set_save(config, value)
        elif key == "dir":
            try:
                os.chdir(value)
            except OSError as exc:
                raise ConfigCommandError(
                    f"Changing directory: {exc.strerror}") from None
        else:
            raise ConfigCommandError(f"Unsupported CONFIG parameter: {name}")
    except _BadFormat:
        raise ConfigCommandError(
            f"Invalid argument '{value}' for CONFIG SET '{name}'") from None


def _yes_no_text(flag: bool) -> str:
    return "yes" if flag else "no"


def _save_text(config: ServerConfig) -> str:
    return " ".join(f"{p.seconds} {p.changes}" for p in config.save_params)


_GETTERS: List[Tuple[str, Callable[[ServerConfig], Optional[str]]]] = [
    ("dir", lambda c: os.getcwd()),
    ("dbfilename", lambda c: c.dbfilename),
    ("requirepass", lambda c: c.requirepass),
    ("masterauth", lambda c: c.masterauth),
    ("maxmemory", lambda c: str(c.maxmemory)),
    ("maxmemory-policy", lambda c: MaxMemoryPolicy(c.maxmemory_policy).label),
    ("maxmemory-samples", lambda c: str(c.maxmemory_samples)),
    ("timeout", lambda c: str(c.maxidletime)),
    ("appendonly", lambda c: _yes_no_text(c.appendonly)),
    ("no-appendfsync-on-rewrite",
     lambda c: _yes_no_text(c.no_appendfsync_on_rewrite)),
    ("appendfsync", lambda c: AppendFsync(c.appendfsync).label),
    ("save", _save_text),
    ("auto-aof-rewrite-percentage", lambda c: str(c.auto_aofrewrite_perc)),
    ("auto-aof-rewrite-min-size", lambda c: str(c.auto_aofrewrite_min_size)),
    ("slave-serve-stale-data", lambda c: _yes_no_text(c.repl_serve_stale_data)),
    ("hash-max-zipmap-entries", lambda c: str(c.hash_max_zipmap_entries)),
    ("hash-max-zipmap-value", lambda c: str(c.hash_max_zipmap_value)),
    ("list-max-ziplist-entries", lambda c: str(c.list_max_ziplist_entries)),
    ("list-max-ziplist-value", lambda c: str(c.list_max_ziplist_value)),
    ("set-max-intset-entries", lambda c: str(c.set_max_intset_entries)),
    ("zset-max-ziplist-entries", lambda c: str(c.zset_max_ziplist_entries)),
    ("zset-max-ziplist-value", lambda c: str(c.zset_max_ziplist_value)),
    ("slowlog-log-slower-than", lambda c: str(c.slowlog_log_slower_than)),
    ("slowlog-max-len", lambda c: str(c.slowlog_max_len)),
    ("loglevel", lambda c: LogLevel(c.verbosity).label),
]


def config_get(config: ServerConfig,
               pattern: str) -> List[Tuple[str, Optional[str]]]:
    """Return ``(name, value)`` for every setting whose name matches the glob."""
    regex = _glob_regex(pattern)
    return [(name, getter(config)) for name, getter in _GETTERS
            if regex.fullmatch(name) is not None]


def config_command(config: ServerConfig, argv: Sequence[str]) -> Reply:
    """Run a full CONFIG command line, ``argv[0]`` being the command name.

    Returns ``"OK"`` for SET and RESETSTAT, the matching pairs for GET.
    """
    if len(argv) < 2:
        raise ConfigCommandError("Wrong number of arguments for CONFIG")
    sub = argv[1]
    lowered = sub.lower()
    if lowered == "set":
        if len(argv) != 4:
            raise ConfigCommandError(f"Wrong number of arguments for CONFIG {sub}")
        config_set(config, argv[2], argv[3])
        return "OK"
    if lowered == "get":
        if len(argv) != 3:
            raise ConfigCommandError(f"Wrong number of arguments for CONFIG {sub}")
        return config_get(config, argv[2])
    if lowered == "resetstat":
        if len(argv) != 2:
            raise ConfigCommandError(f"Wrong number of arguments for CONFIG {sub}")
        config.stat_keyspace_hits = 0
        config.stat_keyspace_misses = 0
        config.stat_numcommands = 0
        config.stat_numconnections = 0
        config.stat_expiredkeys = 0
        return "OK"
    raise ConfigCommandError("CONFIG subcommand must be one of GET, SET, RESETSTAT")