import logging
import random
from datetime import datetime, timezone

from prom_eagle.domain.metrics import EagleDemand

logger = logging.getLogger(__name__)


class MockEagleAdapter:
    async def get_reading(self) -> EagleDemand:
        logger.debug("Mock: Fetching instantaneous demand")

        # Multiplier 1 and divisor 1000 make the demand read directly as watts
        watts = random.randint(150, 4500)

        return EagleDemand(
            device_mac_id="0xd8d5b90000000001",
            meter_mac_id="0x00135003000000a1",
            timestamp=hex(int(datetime.now(timezone.utc).timestamp())),
            demand=f"0x{watts:08x}",
            multiplier="0x00000001",
            divisor="0x000003e8",
            digits_right="0x03",
            digits_left="0x06",
            suppress_leading_zero="Y",
        )

    async def close(self) -> None:
        pass
