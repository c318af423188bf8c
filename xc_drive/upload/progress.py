import logging
from typing import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class ProgressReporter:
    """Forwards percentages to a sink, clamped to [0, 100] and never decreasing."""

    def __init__(self, sink: ProgressCallback | None = None):
        self.sink = sink
        self.last: float = 0.0

    def report(self, percent: float) -> None:
        percent = min(max(percent, 0.0), 100.0)
        if percent < self.last:
            logger.debug(f"Dropping regressive progress {percent:.2f} < {self.last:.2f}")
            return
        self.last = percent
        if self.sink is not None:
            self.sink(percent)

    def report_fraction(self, done: int, total: int) -> None:
        self.report(done / total * 100)


class TqdmProgress:
    """Progress sink that renders a ``tqdm`` bar in percent."""

    def __init__(self, desc: str | None = None, **kwargs):
        from tqdm import tqdm

        self._last = 0.0
        self.pbar = tqdm(
            desc=desc,
            total=100,
            unit="%",
            bar_format="{l_bar}{bar}| {n:.1f}/{total:.0f}%",
            **kwargs,
        )

    def __call__(self, percent: float) -> None:
        self.pbar.update(percent - self._last)
        self._last = percent

    def close(self) -> None:
        self.pbar.close()

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
