"""Per-cycle driver: refresh channel status, then look for noisy channels."""
import logging
import threading
import multiprocessing
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from obspy import UTCDateTime

from ..analysis.models import FilterSettings, DEFAULT_SETTINGS
from ..analysis.noisy_detector import NoisyChannelDetector
from ..analysis.status_provider import StatusProvider
from ..clients.raw_digits import RawDigit, uncompress
from ..core.models import ChannelStatus, ChannelStatusCode
from ..core.noise_metrics import baseline_rms
from ..services.logging_config import initialize_worker_logger, get_cycle_logger

logger = logging.getLogger(__name__)

# Set in pool workers by init_worker()
_IN_WORKER = False


def init_worker(log_level: int, log_file_path: Optional[str]):
    """Initializer for pool worker processes."""
    global _IN_WORKER
    initialize_worker_logger(log_level, log_file_path)
    _IN_WORKER = True


def _channel_rms(job: Tuple) -> Tuple[int, Optional[float]]:
    """
    Uncompresses one channel and computes its truncated baseline RMS.

    Runs in the parent or in a pool worker. Returns (channel, None) when
    the payload cannot be decoded.
    """
    channel, adcs, compression, max_length, fraction, cycle_id = job
    log = get_cycle_logger(cycle_id) if _IN_WORKER else logger
    try:
        samples = uncompress(adcs, compression, max_length)
    except ValueError as e:
        log.warning(f"Channel {channel}: cannot uncompress raw digit ({e}). Skipping.")
        return channel, None
    return channel, baseline_rms(samples, fraction)


@dataclass
class CycleResult:
    """Outcome of one processing cycle."""
    timestamp: UTCDateTime
    base_reloaded: bool
    detection_run: bool = False
    analyzed: int = 0
    noisy: Set[int] = field(default_factory=set)


class ChannelFilterService:
    """
    Runs processing cycles against a StatusProvider.

    Every cycle refreshes the provider and, if enabled, analyzes the raw
    digits of the cycle. The refresh and the detection happen under one
    lock, and every read accessor takes the same lock, so readers never see
    a provider in the middle of a cycle.
    """

    def __init__(self, provider: StatusProvider, detector: NoisyChannelDetector,
                 detector_properties, settings: FilterSettings = DEFAULT_SETTINGS,
                 processes: int = 1, log_level: int = logging.WARNING,
                 log_file_path: Optional[str] = None):
        self.provider = provider
        self.detector = detector
        self.detector_properties = detector_properties
        self.settings = settings
        self.processes = max(1, int(processes))
        self.log_level = log_level
        self.log_file_path = log_file_path
        self._lock = threading.RLock()
        self._max_samples = detector_properties.max_sample_count()
        self._cycle_id = "idle"

    # --- Cycle ---

    def begin_cycle(self, timestamp: UTCDateTime) -> bool:
        """Refreshes the provider for `timestamp`. Returns True if the base table was reloaded."""
        with self._lock:
            self._cycle_id = str(timestamp)
            self._max_samples = self.detector_properties.max_sample_count()
            return self.provider.refresh(timestamp)

    def analyze(self, channel: int, samples) -> bool:
        """Runs the detector on already uncompressed samples of one channel."""
        with self._lock:
            return self.detector.analyze(channel, samples)

    def analyze_digits(self, digits: Iterable[RawDigit]) -> Tuple[int, Set[int]]:
        """
        Analyzes the raw digits of the current cycle.

        Bad and absent channels are skipped before uncompressing. The
        uncompressed length is bounded by the smallest declared sample count
        seen so far in the cycle.

        Returns:
            (number of channels analyzed, channels newly flagged noisy)
        """
        with self._lock:
            jobs = []
            for digit in digits:
                if not self.detector.should_analyze(digit.channel):
                    continue
                self._max_samples = min(self._max_samples, int(digit.samples))
                jobs.append((digit.channel, digit.adcs, int(digit.compression),
                             self._max_samples, self.detector.trunc_mean_fraction,
                             self._cycle_id))

            results = self._compute_rms(jobs)

            flagged = set()
            for channel, rms in results:
                if rms is None:
                    continue
                if self.detector.exceeds_cut(channel, rms) and self.provider.report_noisy(channel):
                    flagged.add(channel)
            return len(jobs), flagged

    def _compute_rms(self, jobs: List[Tuple]) -> List[Tuple[int, Optional[float]]]:
        if self.processes > 1 and len(jobs) > 1:
            logger.debug(f"Computing {len(jobs)} channel baselines with {self.processes} workers.")
            with multiprocessing.Pool(processes=self.processes,
                                      initializer=init_worker,
                                      initargs=(self.log_level, self.log_file_path)) as pool:
                return pool.map(_channel_rms, jobs)
        return [_channel_rms(job) for job in jobs]

    @contextmanager
    def cycle(self, timestamp: UTCDateTime):
        """
        Holds the service lock for a whole cycle:

            with service.cycle(ts) as svc:
                svc.analyze(channel, samples)
        """
        with self._lock:
            self.begin_cycle(timestamp)
            yield self

    def process_cycle(self, timestamp: UTCDateTime,
                      digits: Optional[Iterable[RawDigit]]) -> CycleResult:
        """
        Runs one complete cycle.

        Detection is skipped when disabled in the settings or when the cycle
        has no raw digits for the configured source label.
        """
        with self._lock:
            result = CycleResult(timestamp=timestamp, base_reloaded=self.begin_cycle(timestamp))
            if not self.settings.find_noisy_channels:
                return result
            if digits is None:
                logger.info(f"No raw digits with label '{self.settings.digit_source_label}' "
                            f"at {timestamp}. Skipping noisy-channel search.")
                return result

            result.analyzed, result.noisy = self.analyze_digits(digits)
            result.detection_run = True
            logger.debug(f"Cycle {timestamp}: analyzed {result.analyzed} channels, "
                         f"{len(result.noisy)} noisy")
            return result

    # --- Read accessors ---

    def get_status(self, channel: int) -> ChannelStatus:
        with self._lock:
            return self.provider.get_status(channel)

    def get_channels_with_status(self, status: ChannelStatusCode) -> Set[int]:
        with self._lock:
            return self.provider.get_channels_with_status(status)

    def good_channels(self) -> Set[int]:
        with self._lock:
            return self.provider.good_channels()

    def status_summary(self) -> Dict[str, int]:
        with self._lock:
            return self.provider.summary()

    def bad_channels(self) -> Set[int]:
        with self._lock:
            return self.provider.bad_channels()

    def noisy_channels(self) -> Set[int]:
        with self._lock:
            return self.provider.noisy_channels()

    def is_bad(self, channel: int) -> bool:
        with self._lock:
            return self.provider.is_bad(channel)

    def is_present(self, channel: int) -> bool:
        with self._lock:
            return self.provider.is_present(channel)
