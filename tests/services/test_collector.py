import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from prom_eagle.adapters.eagle import EagleAdapter
from prom_eagle.domain.errors import DecodeError, NetworkError, ProtocolError
from prom_eagle.domain.metrics import EagleDemand, PowerReading
from prom_eagle.services.collector import CollectorService
from prom_eagle.services.registry import PowerGauge


def make_demand(demand="0x000004d2", multiplier="0x00000001", divisor="0x00000064"):
    return EagleDemand(
        DeviceMacId="0xd8d5b9000000abcd",
        MeterMacId="0x00135003000012ab",
        TimeStamp="0x2318b7a4",
        Demand=demand,
        Multiplier=multiplier,
        Divisor=divisor,
    )


class TestCollectorService:
    """Test suite for the CollectorService class."""

    @pytest.fixture
    def mock_telemetry(self):
        """Create a mock EagleAdapter."""
        return AsyncMock(spec=EagleAdapter)

    @pytest.fixture
    def gauge(self):
        return PowerGauge()

    @pytest.fixture
    def collector(self, mock_telemetry, gauge):
        """Create a CollectorService instance."""
        return CollectorService(telemetry=mock_telemetry, gauge=gauge)

    def test_initialization(self, collector, mock_telemetry, gauge):
        assert collector.telemetry == mock_telemetry
        assert collector.gauge is gauge

    @pytest.mark.asyncio
    async def test_fetch_and_publish_success(self, collector, mock_telemetry, gauge):
        """Test that a decoded reading is published to the gauge."""
        mock_telemetry.get_reading.return_value = make_demand("0x0000000A", "0x00000002", "0x000003E8")

        result = await collector.fetch_and_publish()

        mock_telemetry.get_reading.assert_called_once()
        assert isinstance(result, PowerReading)
        assert result.power_watts == 20.0
        assert gauge.snapshot() == 20.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [NetworkError("Connection refused"), ProtocolError("Eagle cloud returned status 500")],
    )
    async def test_fetch_and_publish_propagates_poll_errors(self, collector, mock_telemetry, gauge, error):
        """Test that adapter errors propagate and leave the gauge untouched."""
        gauge.set(50.0)
        mock_telemetry.get_reading.side_effect = error

        with pytest.raises(type(error)):
            await collector.fetch_and_publish()

        assert gauge.snapshot() == 50.0

    @pytest.mark.asyncio
    async def test_fetch_and_publish_decode_error(self, collector, mock_telemetry, gauge):
        """Test that malformed hex leaves the gauge untouched."""
        mock_telemetry.get_reading.return_value = make_demand(demand="0xZZZZ")

        with pytest.raises(DecodeError):
            await collector.fetch_and_publish()

        assert gauge.snapshot() is None

    @pytest.mark.asyncio
    async def test_fetch_and_publish_does_not_retry(self, collector, mock_telemetry):
        mock_telemetry.get_reading.side_effect = NetworkError("timeout")

        with pytest.raises(NetworkError):
            await collector.fetch_and_publish()

        assert mock_telemetry.get_reading.call_count == 1

    @pytest.mark.asyncio
    async def test_poll_once_success(self, collector, mock_telemetry, gauge, caplog):
        mock_telemetry.get_reading.return_value = make_demand("0x00000001", "0x00000001", "0x00000384")

        with caplog.at_level(logging.INFO):
            result = await collector.poll_once()

        assert result.power_watts == 0.9
        assert gauge.snapshot() == 0.9
        assert "Instantaneous power: 0.9W" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,kind",
        [
            (NetworkError("Connection refused"), "network"),
            (ProtocolError("bad shape"), "protocol"),
            (DecodeError("bad hex"), "decode"),
        ],
    )
    async def test_poll_once_logs_poll_error_kind(self, collector, mock_telemetry, gauge, caplog, error, kind):
        """Test that poll errors are logged with their kind and not raised."""
        gauge.set(10.0)
        mock_telemetry.get_reading.side_effect = error

        with caplog.at_level(logging.WARNING):
            result = await collector.poll_once()

        assert result is None
        assert gauge.snapshot() == 10.0
        assert f"{kind} error" in caplog.text

    @pytest.mark.asyncio
    async def test_poll_once_failure_reports_age_of_published_value(self, collector, mock_telemetry, gauge, caplog):
        gauge.set(10.0)
        mock_telemetry.get_reading.side_effect = NetworkError("Connection refused")

        with caplog.at_level(logging.WARNING):
            await collector.poll_once()

        assert "keeping value from 0s ago" in caplog.text

    @pytest.mark.asyncio
    async def test_poll_once_failure_before_first_value(self, collector, mock_telemetry, caplog):
        mock_telemetry.get_reading.side_effect = ProtocolError("Eagle cloud returned status 502")

        with caplog.at_level(logging.WARNING):
            await collector.poll_once()

        assert "no value published yet" in caplog.text

    @pytest.mark.asyncio
    async def test_poll_once_contains_unexpected_errors(self, collector, mock_telemetry, gauge, caplog):
        mock_telemetry.get_reading.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.ERROR):
            result = await collector.poll_once()

        assert result is None
        assert gauge.snapshot() is None
        assert "Unexpected error during poll: boom" in caplog.text

    @pytest.mark.asyncio
    async def test_poll_once_propagates_cancellation(self, collector, mock_telemetry):
        mock_telemetry.get_reading.side_effect = asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await collector.poll_once()

    @pytest.mark.asyncio
    async def test_run_polls_until_stopped(self, collector, mock_telemetry, gauge):
        """Test that the loop keeps polling on schedule and exits once stop is set."""
        stop = asyncio.Event()
        calls = []

        async def get_reading():
            calls.append(gauge.snapshot())
            if len(calls) == 3:
                stop.set()
            return make_demand(demand=f"0x{len(calls):08x}", divisor="0x000003e8")

        mock_telemetry.get_reading.side_effect = get_reading

        await asyncio.wait_for(collector.run(0.01, stop), timeout=5)

        assert len(calls) == 3
        assert calls == [None, 1.0, 2.0]
        assert gauge.snapshot() == 3.0

    @pytest.mark.asyncio
    async def test_run_survives_failures(self, collector, mock_telemetry, gauge):
        """A failing first poll must not stop the loop; the next one publishes."""
        stop = asyncio.Event()
        observed = []

        async def get_reading():
            observed.append(gauge.snapshot())
            if len(observed) == 1:
                raise NetworkError("Connection refused")
            stop.set()
            # 1234 * 1 * (100 / 1000)
            return make_demand("0x000004d2", "0x00000001", "0x00000064")

        mock_telemetry.get_reading.side_effect = get_reading

        await asyncio.wait_for(collector.run(0.01, stop), timeout=5)

        # Registry unchanged after the failed poll
        assert observed == [None, None]
        assert gauge.snapshot() == pytest.approx(123.4)

    @pytest.mark.asyncio
    async def test_run_waits_for_interval(self, collector, mock_telemetry):
        """Test that the loop sleeps between polls instead of spinning."""
        mock_telemetry.get_reading.return_value = make_demand()

        task = asyncio.create_task(collector.run(10))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert mock_telemetry.get_reading.call_count == 1

    @pytest.mark.asyncio
    async def test_run_cancelled_during_poll(self, collector, mock_telemetry, gauge):
        """Test that shutdown does not wait for an in-flight poll."""
        started = asyncio.Event()

        async def slow_reading():
            started.set()
            await asyncio.sleep(60)
            return make_demand()

        mock_telemetry.get_reading.side_effect = slow_reading

        task = asyncio.create_task(collector.run(10))
        await asyncio.wait_for(started.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert gauge.snapshot() is None

    @pytest.mark.asyncio
    async def test_stop_interrupts_sleep(self, collector, mock_telemetry):
        mock_telemetry.get_reading.return_value = make_demand()
        stop = asyncio.Event()

        task = asyncio.create_task(collector.run(3600, stop))
        await asyncio.sleep(0.05)
        stop.set()

        await asyncio.wait_for(task, timeout=5)
        assert mock_telemetry.get_reading.call_count == 1
