"""Run control: deadlines and the retailer success policy."""
import time
import logging
from typing import Optional
from dataclasses import dataclass, field

from groceryscan.config import config

logger = logging.getLogger(__name__)


def is_successful_run(errored_terms: int, total_terms: int, ratio: float | None = None) -> bool:
    """A retailer run succeeds when fewer than ``ratio`` of its terms errored."""
    ratio = config.SUCCESS_ERROR_RATIO if ratio is None else ratio
    return errored_terms < total_terms * ratio


@dataclass
class RunControl:
    """Wall-clock budget for one scheduled crawl."""

    stop_after_minutes: Optional[float] = None

    # Internal state
    start_time: float = field(default_factory=time.monotonic)
    stopped_reason: Optional[str] = None

    def elapsed_minutes(self) -> float:
        return (time.monotonic() - self.start_time) / 60

    def should_stop(self) -> tuple[bool, Optional[str]]:
        """Check if the run should stop. Returns (should_stop, reason)."""
        if self.stopped_reason:
            return True, self.stopped_reason
        if self.stop_after_minutes is not None and self.elapsed_minutes() >= self.stop_after_minutes:
            self.stopped_reason = f"Reached stop_after_minutes={self.stop_after_minutes}"
            logger.warning(self.stopped_reason)
            return True, self.stopped_reason
        return False, None

    def get_summary(self) -> dict:
        return {
            "elapsed_minutes": round(self.elapsed_minutes(), 2),
            "stopped_reason": self.stopped_reason,
        }
