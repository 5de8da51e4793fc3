class PromEagleError(Exception):
    """Base class for all errors raised by prom_eagle."""


class ConfigError(PromEagleError):
    """Configuration file missing, unreadable or invalid. Fatal at startup."""


class PollError(PromEagleError):
    """A single poll cycle failed. The published value stays as it was."""

    kind = "poll"


class NetworkError(PollError):
    kind = "network"


class ProtocolError(PollError):
    kind = "protocol"


class DecodeError(PollError):
    kind = "decode"


class ExpositionError(PromEagleError):
    """Rendering the metrics for a scrape failed."""
