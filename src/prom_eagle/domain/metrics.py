import logging
import re
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from prom_eagle.domain.errors import DecodeError

logger = logging.getLogger(__name__)

# Vendor values are 64-bit integers written as "0x" followed by hex digits.
_HEX_VALUE = re.compile(r"0[xX]([0-9a-fA-F]{1,16})")


class EagleDemand(BaseModel):
    """The InstantaneousDemand block returned by the Eagle cloud."""

    model_config = ConfigDict(populate_by_name=True)

    device_mac_id: str = Field(alias="DeviceMacId")
    meter_mac_id: str = Field(alias="MeterMacId")
    timestamp: str = Field(alias="TimeStamp")
    demand: str = Field(alias="Demand")
    multiplier: str = Field(alias="Multiplier")
    divisor: str = Field(alias="Divisor")

    # Display hints, not used for the power value
    digits_right: Optional[str] = Field(default=None, alias="DigitsRight")
    digits_left: Optional[str] = Field(default=None, alias="DigitsLeft")
    suppress_leading_zero: Optional[str] = Field(default=None, alias="SuppressLeadingZero")


class EagleResponse(BaseModel):
    instantaneous_demand: EagleDemand = Field(alias="InstantaneousDemand")


class PowerReading(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    power_watts: float


def parse_hex(value: object, field: str) -> int:
    """
    Parse a prefixed hex string such as "0x000003E8".

    Raises DecodeError if the prefix is missing, the digits are not hex,
    or the value does not fit in 64 bits.
    """
    if not isinstance(value, str):
        raise DecodeError(f"{field}: expected a hex string, got {type(value).__name__}")

    match = _HEX_VALUE.fullmatch(value)
    if match is None:
        raise DecodeError(f"{field}: malformed hex value {value!r}")

    return int(match.group(1), 16)


def decode_power(demand: EagleDemand) -> float:
    """
    Returns the power represented by a demand reading, in watts.

    The vendor defines the value as Demand * Multiplier scaled by Divisor / 1000.
    """
    raw_demand = parse_hex(demand.demand, "Demand")
    multiplier = parse_hex(demand.multiplier, "Multiplier")
    divisor = parse_hex(demand.divisor, "Divisor")

    factor = divisor / 1000.0
    result = (raw_demand * multiplier) * factor

    logger.debug(f"Demand:     {raw_demand}")
    logger.debug(f"Multiplier: {multiplier}")
    logger.debug(f"Divisor:    {divisor}")
    logger.debug(f"Factor:     {factor}")
    logger.debug(f"Result:     {result}")

    return result
