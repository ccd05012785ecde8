"""Event loop, readiness poller, double-ended list, 32-bit bit operations and server configuration."""

__version__ = "0.1.0"

__all__ = [
    "bit32",
    "configcommand",
    "dlist",
    "eventloop",
    "poller",
    "serverconfig",
]