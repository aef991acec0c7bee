"""Timing instrumentation for report runs."""

import time
from contextlib import contextmanager
from typing import Optional

from app.core.logging import get_logger

logger = get_logger(__name__)


class RunTracker:
    """
    Per-stage durations and degradations for one report run.

    Stages are recorded in the order they complete; ``degraded`` lists the
    stages that fell back to a lower tier.
    """

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id
        self.stages: dict[str, float] = {}
        self.degraded: list[str] = []
        self._start = time.perf_counter()

    @contextmanager
    def stage(self, name: str):
        """Time one stage; the duration is recorded even when the stage raises."""
        start = time.perf_counter()
        failed = False
        try:
            yield
        except BaseException:
            failed = True
            raise
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
            self.stages[name] = elapsed_ms
            logger.debug(
                f"Stage {name} {'failed after' if failed else 'took'} {elapsed_ms}ms",
                extra={"run_id": self.run_id, "stage": name, "duration_ms": elapsed_ms},
            )

    def mark_degraded(self, stage: str):
        if stage not in self.degraded:
            self.degraded.append(stage)

    def total_ms(self) -> float:
        return round((time.perf_counter() - self._start) * 1000, 1)

    def summary(self) -> dict:
        return {
            "stages_ms": dict(self.stages),
            "degraded": list(self.degraded),
            "total_ms": self.total_ms(),
        }

    def log(self):
        logger.info(
            f"⏱️ Report run: {self.total_ms():.1f}ms "
            f"({', '.join(f'{k}={v}ms' for k, v in self.stages.items())})",
            extra={"run_id": self.run_id, "degraded": self.degraded},
        )
