# chstatus/analysis/noisy_detector.py
import logging
from typing import Optional

from ..core.noise_metrics import BaselineStats, compute_baseline
from .models import FilterSettings, DEFAULT_SETTINGS
from .status_provider import StatusProvider

logger = logging.getLogger(__name__)


class NoisyChannelDetector:
    """
    Flags channels whose truncated baseline RMS reaches the cut of their view.

    Args:
        provider: Receives report_noisy() calls and decides which channels
            are skipped as bad or absent.
        topology: Provides view_of(channel).
        settings: trunc_mean_fraction and rms_cut_per_view.
    """

    def __init__(self, provider: StatusProvider, topology, settings: FilterSettings = DEFAULT_SETTINGS):
        self.provider = provider
        self.topology = topology
        self.trunc_mean_fraction = settings.trunc_mean_fraction
        self.rms_cut_per_view = list(settings.rms_cut_per_view)

    def baseline(self, samples) -> BaselineStats:
        return compute_baseline(samples, self.trunc_mean_fraction)

    def rms_cut_for(self, channel: int) -> Optional[float]:
        """Returns the RMS cut of the channel's view, or None if it has none."""
        try:
            view = self.topology.view_of(channel)
        except ValueError as e:
            logger.warning(f"No view for channel {channel}: {e}")
            return None
        if not 0 <= view < len(self.rms_cut_per_view):
            logger.warning(f"No RMS cut configured for view {view} (channel {channel})")
            return None
        return self.rms_cut_per_view[view]

    def exceeds_cut(self, channel: int, rms: float) -> bool:
        cut = self.rms_cut_for(channel)
        return cut is not None and rms >= cut

    def is_noisy(self, channel: int, samples) -> bool:
        """Pure verdict for one channel; does not touch the provider."""
        stats = self.baseline(samples)
        noisy = self.exceeds_cut(channel, stats.rms)
        logger.debug(
            f"Channel {channel}: n={stats.n_samples} mode={stats.mode} "
            f"mean={stats.mean:.3f} rms={stats.rms:.3f} noisy={noisy}"
        )
        return noisy

    def should_analyze(self, channel: int) -> bool:
        return not self.provider.is_bad(channel) and self.provider.is_present(channel)

    def analyze(self, channel: int, samples) -> bool:
        """
        Runs the detector on one channel and reports it if noisy.

        Channels already bad or not present are skipped.

        Returns:
            True if the channel was reported noisy.
        """
        if not self.should_analyze(channel):
            return False
        if not self.is_noisy(channel, samples):
            return False
        return self.provider.report_noisy(channel)
