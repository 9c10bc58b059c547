"""Exception hierarchy for conping.

Only configuration and resolution failures are fatal. Dial failures are
recorded on the probe outcome and the loop carries on.
"""


class ConpingError(Exception):
    """Base class for every error raised by conping."""


class ConfigError(ConpingError):
    """Missing host, invalid port, unknown transport or malformed DNS endpoint."""


class ResolutionError(ConpingError):
    """Host lookup failed or returned no addresses."""

    def __init__(self, host: str, reason: str):
        self.host = host
        self.reason = reason
        super().__init__(f"lookup {host}: {reason}")


class DialError(ConpingError):
    """A single connection attempt failed."""

    def __init__(self, address: str, cause: Exception):
        self.address = address
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)
