# chstatus/services/db_folder.py
import logging
from typing import Dict, List, Optional, Tuple

from obspy import UTCDateTime

from ..core.snapshot import ChannelNotFoundError, ValidityInterval
from .repository import StatusRepository

logger = logging.getLogger(__name__)


class BackingStoreUnavailable(Exception):
    """The status database could not provide data for a timestamp."""


class DBFolder:
    """
    Cached view of the channel status table for one interval of validity.

    update() reloads only when the requested timestamp falls outside the
    cached interval.
    """
    FIELDS = ('status',)

    def __init__(self, repository: StatusRepository):
        self.repository = repository
        self._iov: Optional[ValidityInterval] = None
        self._iov_id = None
        self._rows: Dict[int, Dict[str, object]] = {}

    def update(self, timestamp: UTCDateTime) -> bool:
        """
        Makes sure the cached folder covers `timestamp`.

        Returns:
            True if a new interval was loaded, False if the cache is current.

        Raises:
            BackingStoreUnavailable: on database errors, or when no interval
                covers the timestamp.
        """
        if self._iov is not None and self._iov.contains(timestamp):
            return False

        query_time = timestamp.datetime
        iov_rows = self.repository.get_iov_at(query_time)
        if iov_rows is None:
            raise BackingStoreUnavailable(f"IoV query failed for {timestamp}")
        if not iov_rows:
            raise BackingStoreUnavailable(f"No interval of validity covers {timestamp}")

        iov_id, begin, end = iov_rows[0]
        if end is None:
            next_rows = self.repository.get_next_iov_begin(begin)
            if next_rows is None:
                raise BackingStoreUnavailable(f"IoV end query failed for {timestamp}")
            if next_rows and next_rows[0][0] is not None:
                end = next_rows[0][0]

        iov = ValidityInterval(UTCDateTime(begin), UTCDateTime(end) if end is not None else None)
        if not iov.contains(timestamp):
            raise BackingStoreUnavailable(f"Interval {iov_id} ended before {timestamp}")

        status_rows = self.repository.get_channel_status(iov_id)
        if status_rows is None:
            raise BackingStoreUnavailable(f"Channel status query failed for IoV {iov_id}")

        self._rows = {int(channel): {'status': status} for channel, status in status_rows}
        self._iov = iov
        self._iov_id = iov_id
        logger.info(f"Loaded IoV {iov_id} [{iov.begin}, {iov.end}) with {len(self._rows)} channels")
        return True

    def validity_interval(self) -> Tuple[UTCDateTime, Optional[UTCDateTime]]:
        if self._iov is None:
            raise BackingStoreUnavailable("No interval of validity loaded")
        return self._iov.begin, self._iov.end

    def channel_ids(self) -> List[int]:
        return list(self._rows)

    def get_named_field(self, channel: int, name: str):
        if name not in self.FIELDS:
            raise KeyError(f"Unknown field '{name}'")
        row = self._rows.get(channel)
        if row is None:
            raise ChannelNotFoundError(channel)
        return row[name]
