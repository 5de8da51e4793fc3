import threading
from datetime import datetime, timezone
from typing import Iterator, Optional

from prometheus_client import CollectorRegistry
from prometheus_client.core import GaugeMetricFamily

METRIC_NAME = "instantaneous_power"
METRIC_HELP = "Instantaneous electricity usage."
METRIC_LABELS = {"handler": "all"}


class PowerGauge:
    """
    Latest published power value, shared by the poll loop (writer) and the
    scrape handlers (readers). Holds None until the first successful poll.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._value: Optional[float] = None
        self._updated_at: Optional[datetime] = None

    def set(self, value: float) -> None:
        now = datetime.now(timezone.utc)
        with self._lock:
            self._value = float(value)
            self._updated_at = now

    def snapshot(self) -> Optional[float]:
        with self._lock:
            return self._value

    @property
    def updated_at(self) -> Optional[datetime]:
        with self._lock:
            return self._updated_at


class PowerCollector:
    """Exposes a PowerGauge to a prometheus_client registry."""

    def __init__(self, gauge: PowerGauge):
        self.gauge = gauge

    def collect(self) -> Iterator[GaugeMetricFamily]:
        family = GaugeMetricFamily(METRIC_NAME, METRIC_HELP, labels=list(METRIC_LABELS))
        value = self.gauge.snapshot()
        if value is not None:
            family.add_metric(list(METRIC_LABELS.values()), value)
        yield family


def build_registry(gauge: PowerGauge) -> CollectorRegistry:
    registry = CollectorRegistry()
    registry.register(PowerCollector(gauge))
    return registry
