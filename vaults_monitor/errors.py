"""Exception types raised by the monitor."""


class MonitorError(Exception):
    """Base class for all monitor errors."""


class ConfigurationError(MonitorError):
    """A required setting (RPC endpoint, vault address, ...) is missing or invalid."""


class FetchError(MonitorError):
    """A remote-state read failed mid-cycle."""


class MalformedStateError(FetchError):
    """A remote-state read succeeded but returned data that cannot be a valid record."""


class ArithmeticInvariantViolation(MonitorError):
    """An amount computation hit an impossible ledger state (e.g. dividing by zero total shares)."""
