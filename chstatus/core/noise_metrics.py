import math
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class SparseHistogram:
    """
    Frequency histogram keyed by exact sample value.

    Only observed values have entries. get_or_zero() returns 0 for an
    unobserved value and never inserts it.
    """

    def __init__(self, samples):
        values, counts = np.unique(np.asarray(samples, dtype=np.int64), return_counts=True)
        # np.unique returns keys in ascending order
        self._keys = [int(v) for v in values]
        self._counts: Dict[int, int] = {int(v): int(c) for v, c in zip(values, counts)}

    def get_or_zero(self, value: int) -> int:
        return self._counts.get(value, 0)

    def mode(self) -> Tuple[Optional[int], int]:
        """
        Returns (value, count) of the most populated bin.

        Keys are scanned in ascending order with a strictly-greater
        comparison, so ties go to the lowest value.
        """
        best_value = None
        best_count = 0
        for key in self._keys:
            count = self._counts[key]
            if count > best_count:
                best_value = key
                best_count = count
        return best_value, best_count

    def total(self) -> int:
        return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._keys)


@dataclass(frozen=True)
class BaselineStats:
    """Truncated baseline statistics of one channel's samples."""
    n_samples: int
    mode: Optional[int]
    mode_count: int
    min_num_bins: int
    mean: float
    rms: float


def min_num_bins(n_samples: int, trunc_mean_fraction: float) -> int:
    """Minimum cumulative count the truncated window must reach."""
    return int(math.floor((1.0 - trunc_mean_fraction) * n_samples)) - 1


def truncated_mean(hist: SparseHistogram, mode: int, mode_count: int, min_bins: int) -> float:
    """
    Mean over the window grown symmetrically around the mode.

    The count threshold is only checked before each offset step, so both
    sides of the last step are always taken and the accumulated count may
    overshoot min_bins.
    """
    count = mode_count
    weighted = float(mode_count * mode)
    offset = 1
    while count < min_bins:
        below = hist.get_or_zero(mode - offset)
        if below:
            count += below
            weighted += float(below * (mode - offset))
        above = hist.get_or_zero(mode + offset)
        if above:
            count += above
            weighted += float(above * (mode + offset))
        offset += 1
    return weighted / float(count)


def truncated_rms(hist: SparseHistogram, mode: int, mode_count: int,
                  mean: float, min_bins: int) -> float:
    """
    RMS about `mean` over an independently re-walked window around the mode.

    Uses the same expansion and overshoot policy as truncated_mean().
    """
    count = mode_count
    deviation = float(mode) - mean
    sum_sq = deviation * (float(count) * deviation)
    offset = 1
    while count < min_bins:
        below = hist.get_or_zero(mode - offset)
        if below > 0:
            deviation = float(mode - offset) - mean
            count += below
            sum_sq += float(below) * deviation * deviation
        above = hist.get_or_zero(mode + offset)
        if above > 0:
            deviation = float(mode + offset) - mean
            count += above
            sum_sq += float(above) * deviation * deviation
        offset += 1
    return math.sqrt(max(0.0, sum_sq / float(count)))


def compute_baseline(samples, trunc_mean_fraction: float = 0.1) -> BaselineStats:
    """
    Estimates the baseline of a channel with a truncated mean and RMS.

    Parameters
    ----------
    samples : array-like of int
        Uncompressed ADC samples of one channel.
    trunc_mean_fraction : float
        Fraction of samples allowed outside the truncated window, in (0, 1).

    Returns
    -------
    BaselineStats
        An empty sample sequence gives rms 0.0 and mean NaN.
    """
    data = np.asarray(samples)
    if data.ndim != 1:
        raise ValueError(f"Expected a 1-D sample sequence, got shape {data.shape}")

    n_samples = int(data.size)
    min_bins = min_num_bins(n_samples, trunc_mean_fraction)
    if n_samples == 0:
        return BaselineStats(0, None, 0, min_bins, float("nan"), 0.0)

    hist = SparseHistogram(data)
    mode, mode_count = hist.mode()
    mean = truncated_mean(hist, mode, mode_count, min_bins)
    rms = truncated_rms(hist, mode, mode_count, mean, min_bins)
    return BaselineStats(n_samples, mode, mode_count, min_bins, mean, rms)


def baseline_rms(samples, trunc_mean_fraction: float = 0.1) -> float:
    """Convenience wrapper returning only the truncated RMS."""
    return compute_baseline(samples, trunc_mean_fraction).rms
