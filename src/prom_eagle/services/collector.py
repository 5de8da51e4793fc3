import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from prom_eagle.domain.errors import PollError
from prom_eagle.domain.metrics import PowerReading, decode_power
from prom_eagle.ports.telemetry import TelemetryPort
from prom_eagle.services.registry import PowerGauge

logger = logging.getLogger(__name__)


class CollectorService:
    def __init__(self, telemetry: TelemetryPort, gauge: PowerGauge):
        self.telemetry = telemetry
        self.gauge = gauge

    async def fetch_and_publish(self) -> PowerReading:
        """
        Fetch one reading, decode it and publish it to the gauge.

        Raises a PollError subclass on failure; the gauge is only touched
        once the reading has been decoded successfully.
        """
        demand = await self.telemetry.get_reading()
        power = decode_power(demand)
        self.gauge.set(power)
        return PowerReading(timestamp=datetime.now(timezone.utc), power_watts=power)

    async def poll_once(self) -> Optional[PowerReading]:
        """Runs a single poll cycle. Errors are logged, never raised."""
        try:
            reading = await self.fetch_and_publish()
        except PollError as e:
            logger.warning(f"Poll failed ({e.kind} error), {self._staleness()}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error during poll: {e}", exc_info=True)
            return None

        logger.info(f"Instantaneous power: {reading.power_watts}W")
        return reading

    def _staleness(self) -> str:
        updated_at = self.gauge.updated_at
        if updated_at is None:
            return "no value published yet"
        age = (datetime.now(timezone.utc) - updated_at).total_seconds()
        return f"keeping value from {age:.0f}s ago"

    async def run(self, poll_interval: float, stop: Optional[asyncio.Event] = None) -> None:
        """Polls every poll_interval seconds until stop is set or the task is cancelled."""
        if stop is None:
            stop = asyncio.Event()

        logger.info(f"Starting power collection loop (Interval: {poll_interval}s)")
        while not stop.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(stop.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Power collection loop stopped")
