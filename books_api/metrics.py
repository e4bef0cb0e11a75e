import time

from opentelemetry import metrics
from opentelemetry.metrics import CallbackOptions, Meter, Observation

STARTED_AT = time.monotonic()


def uptime_seconds() -> float:
    return time.monotonic() - STARTED_AT


def format_uptime(seconds: float) -> str:
    """Render a duration rounded to whole seconds, e.g. ``42s``, ``3m7s``, ``2h0m5s``."""
    total = int(max(seconds, 0.0) + 0.5)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


class ApiMetrics:
    def __init__(self, meter: Meter | None = None):
        meter = meter or metrics.get_meter("books_api")
        self.api_calls = meter.create_counter(
            "api_call_count",
            description="Tracks the number of API calls made to each endpoint.",
        )
        self.uptime = meter.create_observable_gauge(
            "uptime_seconds",
            callbacks=[self._observe_uptime],
            description="The uptime of the application in seconds.",
        )

    def record_call(self, endpoint: str, method: str) -> None:
        self.api_calls.add(1, {"endpoint": endpoint, "method": method})

    @staticmethod
    def _observe_uptime(options: CallbackOptions):
        yield Observation(uptime_seconds())
