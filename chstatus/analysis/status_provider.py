# chstatus/analysis/status_provider.py
"""
Channel status provider.

Status lookups go through two snapshots: the persistent `base` table and
a transient per-cycle `overlay` holding only channels found noisy during
the current cycle. Both live in a CycleContext that is swapped wholesale
at every refresh.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from obspy import UTCDateTime

from ..core.models import ChannelStatus, ChannelStatusCode, status_from_code
from ..core.snapshot import ChannelNotFoundError, StatusSnapshot
from ..clients.status_file import load_status_table
from ..services.db_folder import BackingStoreUnavailable
from .models import DataSource, FilterSettings, DEFAULT_SETTINGS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleContext:
    """The snapshots visible during one processing cycle."""
    base: StatusSnapshot
    overlay: StatusSnapshot = field(default_factory=StatusSnapshot)


class StatusProvider:
    """
    Answers channel status queries with overlay-first fallback.

    Args:
        settings: Data source selection and status file location.
        topology: Provides all_channel_ids() and n_channels(). May be None,
            in which case Default mode keeps a single exemplar entry.
        folder: Backing-store folder, required in Database mode.
    """

    def __init__(self, settings: FilterSettings = DEFAULT_SETTINGS, topology=None, folder=None):
        self.settings = settings
        self.data_source = settings.data_source
        self.topology = topology
        self.folder = folder
        self._default = ChannelStatus(0, ChannelStatusCode.GOOD)

        if self.data_source == DataSource.DATABASE:
            if folder is None:
                raise ValueError("Database data source selected but no backing-store folder given")
            base = StatusSnapshot()
        elif self.data_source == DataSource.FILE:
            if not settings.status_file:
                raise ValueError("File data source selected but 'status_file' is not set")
            base = load_status_table(settings.status_file)
        else:
            base = self._build_default_snapshot()

        self._context = CycleContext(base=base)
        logger.info(f"StatusProvider initialized: source={self.data_source.value}, {len(base)} channels")

    def _build_default_snapshot(self) -> StatusSnapshot:
        base = StatusSnapshot()
        try:
            channels = self.topology.all_channel_ids()
        except (AttributeError, NotImplementedError) as e:
            logger.warning(f"Channel enumeration unavailable ({e}); using default entry only")
            base.add_or_replace_row(self._default)
            return base

        for channel in channels:
            base.add_or_replace_row(ChannelStatus(int(channel), self._default.status))
        return base

    # --- Cycle handling ---

    @property
    def context(self) -> CycleContext:
        return self._context

    @property
    def base(self) -> StatusSnapshot:
        return self._context.base

    @property
    def overlay(self) -> StatusSnapshot:
        return self._context.overlay

    def refresh(self, timestamp: UTCDateTime) -> bool:
        """
        Starts a new cycle at `timestamp`.

        The overlay is always replaced by an empty one. In Database mode the
        base table is reloaded when the folder moves to a new interval.

        Returns:
            True iff the base table was reloaded.
        """
        context = CycleContext(base=self._context.base)
        self._context = context

        if self.data_source != DataSource.DATABASE:
            return False

        try:
            if not self.folder.update(timestamp):
                return False
            base = StatusSnapshot()
            base.set_validity_interval(*self.folder.validity_interval())
            for channel in self.folder.channel_ids():
                raw_status = self.folder.get_named_field(channel, "status")
                base.add_or_replace_row(ChannelStatus(int(channel), status_from_code(raw_status)))
        except BackingStoreUnavailable as e:
            logger.warning(f"Status refresh failed at {timestamp}: {e}. Keeping previous table.")
            return False

        self._context = CycleContext(base=base, overlay=context.overlay)
        logger.debug(f"Status table reloaded at {timestamp}: {len(base)} channels")
        return True

    # --- Lookups ---

    def find_status(self, channel: int) -> Optional[ChannelStatus]:
        context = self._context
        for snapshot in (context.overlay, context.base):
            row = snapshot.find_row(channel)
            if row is not None:
                return row
        return None

    def get_status(self, channel: int) -> ChannelStatus:
        """
        Returns the overlay entry for `channel` if any, else the base entry.

        Raises:
            ChannelNotFoundError: if neither snapshot knows the channel.
        """
        row = self.find_status(channel)
        if row is None:
            raise ChannelNotFoundError(channel)
        return row

    def max_channel(self) -> int:
        """Upper bound (exclusive) of the channel range scanned by set queries."""
        if self.topology is not None and hasattr(self.topology, 'n_channels'):
            return int(self.topology.n_channels())
        context = self._context
        known = context.base.channels() + context.overlay.channels()
        return max(known) + 1 if known else 0

    def get_channels_with_status(self, status: ChannelStatusCode) -> Set[int]:
        max_channel = self.max_channel()
        if self.data_source == DataSource.DEFAULT:
            if self._default.status == status:
                return set(range(max_channel))
            return set()

        matches = set()
        for channel in range(max_channel):
            row = self.find_status(channel)
            if row is not None and row.status == status:
                matches.add(channel)
        return matches

    def good_channels(self) -> Set[int]:
        return self.get_channels_with_status(ChannelStatusCode.GOOD)

    def dead_channels(self) -> Set[int]:
        return self.get_channels_with_status(ChannelStatusCode.DEAD)

    def low_noise_channels(self) -> Set[int]:
        return self.get_channels_with_status(ChannelStatusCode.LOWNOISE)

    def bad_channels(self) -> Set[int]:
        return self.dead_channels() | self.low_noise_channels()

    def noisy_channels(self) -> Set[int]:
        return self.get_channels_with_status(ChannelStatusCode.NOISY)

    def new_noisy_channels(self) -> Set[int]:
        """Channels flagged noisy during the current cycle."""
        return set(self._context.overlay.channels())

    # --- Predicates ---

    def is_bad(self, channel: int) -> bool:
        row = self.find_status(channel)
        return row is not None and row.is_bad

    def is_present(self, channel: int) -> bool:
        row = self.find_status(channel)
        return row is not None and row.is_present

    def is_good(self, channel: int) -> bool:
        row = self.find_status(channel)
        return row is not None and row.is_good

    def is_noisy(self, channel: int) -> bool:
        row = self.find_status(channel)
        return row is not None and row.is_noisy

    # --- Updates ---

    def report_noisy(self, channel: int) -> bool:
        """
        Flags `channel` as noisy for the current cycle.

        Bad, disconnected or unknown channels are left alone.

        Returns:
            True if the overlay gained (or refreshed) an entry.
        """
        if self.is_bad(channel) or not self.is_present(channel):
            logger.debug(f"Channel {channel} not flagged noisy: bad or not present")
            return False
        self._context.overlay.add_or_replace_row(ChannelStatus(channel, ChannelStatusCode.NOISY))
        return True

    def summary(self) -> Dict[str, int]:
        """Counts channels per status over the scanned range."""
        counts = {code.name: 0 for code in ChannelStatusCode}
        counts['MISSING'] = 0
        for channel in range(self.max_channel()):
            row = self.find_status(channel)
            if row is None:
                counts['MISSING'] += 1
            else:
                counts[row.status.name] += 1
        return counts
