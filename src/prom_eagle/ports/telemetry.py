from typing import Protocol

from prom_eagle.domain.metrics import EagleDemand


class TelemetryPort(Protocol):
    async def get_reading(self) -> EagleDemand:
        """
        Fetch the current instantaneous demand reading.
        Raises NetworkError or ProtocolError on failure.
        """
        ...

    async def close(self) -> None:
        """
        Release any connection held by the adapter.
        """
        ...
