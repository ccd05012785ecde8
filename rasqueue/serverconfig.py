"""Server settings and the parser for the server configuration file."""

from __future__ import annotations

import enum
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

log = logging.getLogger(__name__)

CONFIGLINE_MAX = 1024

SYSLOG_FACILITIES: Dict[str, int] = {
    "user": 1 << 3,
    "local0": 16 << 3,
    "local1": 17 << 3,
    "local2": 18 << 3,
    "local3": 19 << 3,
    "local4": 20 << 3,
    "local5": 21 << 3,
    "local6": 22 << 3,
    "local7": 23 << 3,
}

VM_WARNING = (
    "ARE YOU SURE YOU WANT TO USE VM?\n\n"
    "Redis Virtual Memory is going to be deprecated soon,\n"
    "we think you should NOT use it, but use Redis only if\n"
    "your data is suitable for an in-memory database.\n"
    "If you *really* want VM add this in the config file:\n\n"
    "    really-use-vm yes\n"
)


class ConfigError(Exception):
    """The configuration could not be loaded."""

    def __init__(self, reason: str, line_number: Optional[int] = None,
                 line: Optional[str] = None) -> None:
        self.reason = reason
        self.line_number = line_number
        self.line = line
        if line_number is None:
            message = reason
        else:
            message = (f"Reading the configuration file, at line {line_number}\n"
                       f">>> '{line}'\n{reason}")
        super().__init__(message)


class _Labelled:
    """Methods shared by the enums whose members have a config spelling."""

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")  # type: ignore[attr-defined]

    @classmethod
    def parse(cls, text: str):
        wanted = text.lower()
        for member in cls:  # type: ignore[attr-defined]
            if member.label == wanted:
                return member
        raise ValueError(f"invalid {cls.__name__} {text!r}")


class LogLevel(_Labelled, enum.IntEnum):
    """How much the server logs."""

    DEBUG = 0
    VERBOSE = 1
    NOTICE = 2
    WARNING = 3


class MaxMemoryPolicy(_Labelled, enum.IntEnum):
    """What the server evicts when it reaches its memory limit."""

    VOLATILE_LRU = 0
    VOLATILE_TTL = 1
    VOLATILE_RANDOM = 2
    ALLKEYS_LRU = 3
    ALLKEYS_RANDOM = 4
    NOEVICTION = 5


class AppendFsync(_Labelled, enum.IntEnum):
    """When the append-only file is flushed to disk."""

    NO = 0
    ALWAYS = 1
    EVERYSEC = 2


@dataclass(frozen=True)
class SaveParam:
    """Save after ``seconds`` if at least ``changes`` writes happened."""

    seconds: int
    changes: int


@dataclass
class ServerConfig:
    """All settings the configuration file and CONFIG command control."""

    port: int = 6379
    bindaddr: Optional[str] = None
    unixsocket: Optional[str] = None
    unixsocketperm: int = 0
    maxidletime: int = 300
    save_params: List[SaveParam] = field(default_factory=list)
    verbosity: LogLevel = LogLevel.VERBOSE
    logfile: Optional[str] = None
    syslog_enabled: bool = False
    syslog_ident: str = "redis"
    syslog_facility: int = SYSLOG_FACILITIES["local0"]
    dbnum: int = 16
    maxclients: int = 0
    maxmemory: int = 0
    maxmemory_policy: MaxMemoryPolicy = MaxMemoryPolicy.VOLATILE_LRU
    maxmemory_samples: int = 3
    masterhost: Optional[str] = None
    masterport: int = 6379
    replstate: str = "none"
    repl_ping_slave_period: int = 10
    repl_timeout: int = 60
    masterauth: Optional[str] = None
    repl_serve_stale_data: bool = True
    rdbcompression: bool = True
    activerehashing: bool = True
    daemonize: bool = False
    appendonly: bool = False
    appendfilename: str = "appendonly.aof"
    no_appendfsync_on_rewrite: bool = False
    appendfsync: AppendFsync = AppendFsync.EVERYSEC
    auto_aofrewrite_perc: int = 100
    auto_aofrewrite_min_size: int = 64 * 1024 * 1024
    requirepass: Optional[str] = None
    pidfile: str = "/var/run/redis.pid"
    dbfilename: str = "dump.rdb"
    vm_enabled: bool = False
    vm_swap_file: str = "/tmp/redis-%p.vm"
    vm_max_memory: int = 0
    vm_page_size: int = 256
    vm_pages: int = 1024 * 1024 * 100
    vm_max_threads: int = 4
    hash_max_zipmap_entries: int = 512
    hash_max_zipmap_value: int = 64
    list_max_ziplist_entries: int = 512
    list_max_ziplist_value: int = 64
    set_max_intset_entries: int = 512
    zset_max_ziplist_entries: int = 128
    zset_max_ziplist_value: int = 64
    slowlog_log_slower_than: int = 10000
    slowlog_max_len: int = 128
    commands: Dict[str, Any] = field(default_factory=dict)
    stat_keyspace_hits: int = 0
    stat_keyspace_misses: int = 0
    stat_numcommands: int = 0
    stat_numconnections: int = 0
    stat_expiredkeys: int = 0

    def append_save_param(self, seconds: int, changes: int) -> None:
        """Add a save rule after the existing ones."""
        self.save_params.append(SaveParam(seconds, changes))

    def reset_save_params(self) -> None:
        """Drop every save rule."""
        self.save_params.clear()


def yes_no(value: str) -> bool:
    """Read ``yes`` or ``no`` in any case; anything else is a ValueError."""
    lowered = value.lower()
    if lowered == "yes":
        return True
    if lowered == "no":
        return False
    raise ValueError(f"expected 'yes' or 'no', got {value!r}")


_SPACE = " \t\n\v\f\r"
_WORD_END = (" ", "\n", "\r", "\t", "")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "a": "\a"}
_HEX = set("0123456789abcdefABCDEF")


def split_args(line: str) -> List[str]:
    """Split a line into arguments, honouring double and single quotes.

    Inside double quotes ``\\n``, ``\\r``, ``\\t``, ``\\b``, ``\\a`` and
    ``\\xHH`` are decoded; inside single quotes only ``\\'``.  Raises
    ValueError for unbalanced quotes or a closing quote not followed by
    a space.
    """
    args: List[str] = []
    pos, end = 0, len(line)
    while True:
        while pos < end and line[pos] in _SPACE:
            pos += 1
        if pos >= end:
            return args
        current: List[str] = []
        in_dq = in_sq = done = False
        while not done:
            ch = line[pos] if pos < end else ""
            nxt = line[pos + 1] if pos + 1 < end else ""
            if in_dq:
                if (ch == "\\" and nxt == "x" and line[pos + 2:pos + 3] in _HEX
                        and line[pos + 3:pos + 4] in _HEX):
                    current.append(chr(int(line[pos + 2:pos + 4], 16)))
                    pos += 3
                elif ch == "\\" and nxt:
                    pos += 1
                    current.append(_ESCAPES.get(nxt, nxt))
                elif ch == '"':
                    if nxt and nxt not in _SPACE:
                        raise ValueError("closing quote must be followed by a space")
                    done = True
                elif not ch:
                    raise ValueError("unbalanced quotes")
                else:
                    current.append(ch)
            elif in_sq:
                if ch == "\\" and nxt == "'":
                    pos += 1
                    current.append("'")
                elif ch == "'":
                    if nxt and nxt not in _SPACE:
                        raise ValueError("closing quote must be followed by a space")
                    done = True
                elif not ch:
                    raise ValueError("unbalanced quotes")
                else:
                    current.append(ch)
            elif ch in _WORD_END:
                done = True
            elif ch == '"':
                in_dq = True
            elif ch == "'":
                in_sq = True
            else:
                current.append(ch)
            if pos < end:
                pos += 1
        args.append("".join(current))


_INT_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")
_OCT_PREFIX = re.compile(r"[ \t\n\v\f\r]*([+-]?)([0-7]+)")
_MEM_UNITS = {
    "": 1, "b": 1,
    "k": 1000, "kb": 1024,
    "m": 1000 * 1000, "mb": 1024 * 1024,
    "g": 1000 * 1000 * 1000, "gb": 1024 * 1024 * 1024,
}


def _atoi(text: str) -> int:
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


def _memtoll(text: str) -> int:
    """Parse a memory amount such as ``100``, ``1k``, ``2mb`` or ``1gb``."""
    match = re.match(r"(-?[0-9]*)(.*)\Z", text, re.S)
    assert match is not None
    digits, unit = match.groups()
    multiplier = _MEM_UNITS.get(unit.lower(), 1)
    return _atoi(digits) * multiplier


class _DirectiveError(Exception):
    pass


@dataclass
class _ParseState:
    really_use_vm: bool = False


Handler = Callable[[ServerConfig, List[str], _ParseState], None]
_DIRECTIVES: Dict[str, Tuple[Optional[int], Handler]] = {}


def _directive(name: str, argc: Optional[int] = 2):
    def register(handler: Handler) -> Handler:
        _DIRECTIVES[name] = (argc, handler)
        return handler
    return register


def _register_int(name: str, attr: str,
                  valid: Optional[Callable[[int], bool]] = None,
                  reason: str = "") -> None:
    def handler(config: ServerConfig, args: List[str], state: _ParseState) -> None:
        value = _atoi(args[1])
        setattr(config, attr, value)
        if valid is not None and not valid(value):
            raise _DirectiveError(reason)
    _DIRECTIVES[name] = (2, handler)


def _register_converted(name: str, attr: str, convert: Callable[[str], Any]) -> None:
    def handler(config: ServerConfig, args: List[str], state: _ParseState) -> None:
        setattr(config, attr, convert(args[1]))
    _DIRECTIVES[name] = (2, handler)


def _register_yes_no(name: str, attr: str) -> None:
    def handler(config: ServerConfig, args: List[str], state: _ParseState) -> None:
        try:
            setattr(config, attr, yes_no(args[1]))
        except ValueError:
            raise _DirectiveError("argument must be 'yes' or 'no'") from None
    _DIRECTIVES[name] = (2, handler)


_register_int("timeout", "maxidletime", lambda v: v >= 0, "Invalid timeout value")
_register_int("port", "port", lambda v: 0 <= v <= 65535, "Invalid port")
_register_int("databases", "dbnum", lambda v: v >= 1, "Invalid number of databases")
_register_int("maxclients", "maxclients")
_register_int("maxmemory-samples", "maxmemory_samples", lambda v: v > 0,
              "maxmemory-samples must be 1 or greater")
_register_int("repl-ping-slave-period", "repl_ping_slave_period", lambda v: v > 0,
              "repl-ping-slave-period must be 1 or greater")
_register_int("repl-timeout", "repl_timeout", lambda v: v > 0,
              "repl-timeout must be 1 or greater")
_register_int("auto-aof-rewrite-percentage", "auto_aofrewrite_perc", lambda v: v >= 0,
              "Invalid negative percentage for AOF auto rewrite")

for _name, _attr in (
        ("bind", "bindaddr"), ("unixsocket", "unixsocket"),
        ("syslog-ident", "syslog_ident"), ("masterauth", "masterauth"),
        ("appendfilename", "appendfilename"), ("requirepass", "requirepass"),
        ("pidfile", "pidfile"), ("dbfilename", "dbfilename"),
        ("vm-swap-file", "vm_swap_file")):
    _register_converted(_name, _attr, str)

for _name, _attr in (
        ("maxmemory", "maxmemory"),
        ("auto-aof-rewrite-min-size", "auto_aofrewrite_min_size"),
        ("vm-max-memory", "vm_max_memory"), ("vm-page-size", "vm_page_size"),
        ("vm-pages", "vm_pages"),
        ("hash-max-zipmap-entries", "hash_max_zipmap_entries"),
        ("hash-max-zipmap-value", "hash_max_zipmap_value"),
        ("list-max-ziplist-entries", "list_max_ziplist_entries"),
        ("list-max-ziplist-value", "list_max_ziplist_value"),
        ("set-max-intset-entries", "set_max_intset_entries"),
        ("zset-max-ziplist-entries", "zset_max_ziplist_entries"),
        ("zset-max-ziplist-value", "zset_max_ziplist_value")):
    _register_converted(_name, _attr, _memtoll)

for _name, _attr in (
        ("vm-max-threads", "vm_max_threads"),
        ("slowlog-log-slower-than", "slowlog_log_slower_than"),
        ("slowlog-max-len", "slowlog_max_len")):
    _register_converted(_name, _attr, _atoi)

for _name, _attr in (
        ("syslog-enabled", "syslog_enabled"),
        ("slave-serve-stale-data", "repl_serve_stale_data"),
        ("rdbcompression", "rdbcompression"),
        ("activerehashing", "activerehashing"),
        ("daemonize", "daemonize"), ("appendonly", "appendonly"),
        ("no-appendfsync-on-rewrite", "no_appendfsync_on_rewrite"),
        ("vm-enabled", "vm_enabled")):
    _register_yes_no(_name, _attr)


@_directive("unixsocketperm")
def _unixsocketperm(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    match = _OCT_PREFIX.match(args[1])
    value = int(match.group(2), 8) if match else 0
    if match and match.group(1) == "-" and value:
        raise _DirectiveError("Invalid socket file permissions")
    config.unixsocketperm = value
    if value > 0o777:
        raise _DirectiveError("Invalid socket file permissions")


@_directive("save", 3)
def _save(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    seconds, changes = _atoi(args[1]), _atoi(args[2])
    if seconds < 1 or changes < 0:
        raise _DirectiveError("Invalid save parameters")
    config.append_save_param(seconds, changes)


@_directive("dir")
def _dir(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    try:
        os.chdir(args[1])
    except OSError as exc:
        raise _DirectiveError(f"Can't chdir to '{args[1]}': {exc.strerror}") from None


@_directive("loglevel")
def _loglevel(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    try:
        config.verbosity = LogLevel.parse(args[1])
    except ValueError:
        raise _DirectiveError(
            "Invalid log level. Must be one of debug, notice, warning") from None


@_directive("logfile")
def _logfile(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    path: Optional[str] = args[1]
    if path is not None and path.lower() == "stdout":
        path = None
    config.logfile = path
    if path is not None:
        try:
            with open(path, "a"):
                pass
        except OSError as exc:
            raise _DirectiveError(f"Can't open the log file: {exc.strerror}") from None


@_directive("syslog-facility")
def _syslog_facility(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    value = SYSLOG_FACILITIES.get(args[1].lower())
    if value is None:
        raise _DirectiveError(
            "Invalid log facility. Must be one of USER or between LOCAL0-LOCAL7")
    config.syslog_facility = value


@_directive("include")
def _include(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    load_config(args[1], config)


@_directive("maxmemory-policy")
def _maxmemory_policy(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    try:
        config.maxmemory_policy = MaxMemoryPolicy.parse(args[1])
    except ValueError:
        raise _DirectiveError("Invalid maxmemory policy") from None


@_directive("slaveof", 3)
def _slaveof(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    config.masterhost = args[1]
    config.masterport = _atoi(args[2])
    config.replstate = "connect"


@_directive("glueoutputbuf", None)
def _glueoutputbuf(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    log.warning('Deprecated configuration directive: "%s"', args[0])


@_directive("appendfsync")
def _appendfsync(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    try:
        config.appendfsync = AppendFsync.parse(args[1])
    except ValueError:
        raise _DirectiveError(
            "argument must be 'no', 'always' or 'everysec'") from None


@_directive("really-use-vm")
def _really_use_vm(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    try:
        state.really_use_vm = yes_no(args[1])
    except ValueError:
        raise _DirectiveError("argument must be 'yes' or 'no'") from None


@_directive("rename-command", 3)
def _rename_command(config: ServerConfig, args: List[str], state: _ParseState) -> None:
    old = args[1].lower()
    if old not in config.commands:
        raise _DirectiveError("No such command in rename-command")
    command = config.commands.pop(old)
    new = args[2].lower()
    if new:
        if new in config.commands:
            raise _DirectiveError("Target command name already exists")
        config.commands[new] = command


def _lines(text: str) -> Iterator[str]:
    for raw in re.findall(r"[^\n]*\n|[^\n]+\Z", text):
        while len(raw) > CONFIGLINE_MAX:
            yield raw[:CONFIGLINE_MAX]
            raw = raw[CONFIGLINE_MAX:]
        yield raw


def parse_config(text: str, config: Optional[ServerConfig] = None) -> ServerConfig:
    """Apply the directives in ``text`` to ``config`` and return it.

    Raises ConfigError naming the offending line on the first bad one.
    """
    if config is None:
        config = ServerConfig()
    state = _ParseState()
    for number, raw in enumerate(_lines(text), start=1):
        line = raw.strip(" \t\r\n")
        if not line or line.startswith("#"):
            continue
        try:
            args = split_args(line)
        except ValueError as exc:
            raise ConfigError(f"Unbalanced quotes: {exc}", number, line) from None
        entry = _DIRECTIVES.get(args[0].lower()) if args else None
        if entry is None or (entry[0] is not None and entry[0] != len(args)):
            raise ConfigError("Bad directive or wrong number of arguments",
                              number, line)
        try:
            entry[1](config, args, state)
        except _DirectiveError as exc:
            raise ConfigError(str(exc), number, line) from None
    if config.vm_enabled and not state.really_use_vm:
        raise ConfigError(VM_WARNING)
    return config


def load_config(path: str, config: Optional[ServerConfig] = None) -> ServerConfig:
    """Read the configuration file at ``path`` (``-`` for stdin)."""
    if path == "-":
        text = sys.stdin.read()
    else:
        try:
            with open(path, encoding="utf-8", errors="surrogateescape") as handle:
                text = handle.read()
        except OSError:
            raise ConfigError(
                f"Fatal error, can't open config file '{path}'") from None
    return parse_config(text, config)