"""
POSTUREFIT Exercise Service - Calibration

Baseline measurement collected during the pre-roll before detection.
The session controller drives the announce/countdown/start timing and
feeds samples here; this module only does the arithmetic.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from core.config import settings

logger = logging.getLogger(__name__)


class CalibrationPhase(str, Enum):
    """Pre-roll stages. Samples are taken while ANNOUNCING and COUNTDOWN."""
    IDLE = "idle"
    ANNOUNCING = "announcing"
    COUNTDOWN = "countdown"
    STARTING = "starting"
    DONE = "done"

    @property
    def is_sampling(self) -> bool:
        return self in (CalibrationPhase.ANNOUNCING, CalibrationPhase.COUNTDOWN)


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of one calibration window."""
    baseline: float
    sample_count: int
    degraded: bool
    std_dev: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseline": round(self.baseline, 4),
            "sample_count": self.sample_count,
            "degraded": self.degraded,
            "std_dev": round(self.std_dev, 4),
        }


class CalibrationEngine:
    """Collects qualifying samples and averages them into a baseline."""

    def __init__(self, fallback_baseline: float = settings.CALIBRATION_FALLBACK_BASELINE):
        self.fallback_baseline = fallback_baseline
        self._samples: List[float] = []

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    def reset(self):
        self._samples = []

    def add_sample(self, value: Optional[float]) -> bool:
        """Record a measurement. Unavailable values are skipped."""
        if value is None:
            return False
        self._samples.append(float(value))
        return True

    def finalize(self) -> CalibrationResult:
        """
        Compute the baseline from collected samples.

        With no qualifying samples the fallback baseline is used and the
        result is flagged as degraded.
        """
        if not self._samples:
            logger.warning(
                f"⚠️ No usable calibration samples, using fallback baseline {self.fallback_baseline}"
            )
            return CalibrationResult(
                baseline=self.fallback_baseline,
                sample_count=0,
                degraded=True,
            )

        samples = np.array(self._samples, dtype=float)
        result = CalibrationResult(
            baseline=float(np.mean(samples)),
            sample_count=len(self._samples),
            degraded=False,
            std_dev=float(np.std(samples)),
        )
        logger.info(
            f"📏 Calibrated baseline={result.baseline:.4f} "
            f"(n={result.sample_count}, std={result.std_dev:.4f})"
        )
        return result
