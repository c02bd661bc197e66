# chstatus/core/snapshot.py
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from obspy import UTCDateTime

from .models import ChannelStatus

logger = logging.getLogger(__name__)


class ChannelNotFoundError(KeyError):
    """Raised when a channel has no row in a snapshot."""

    def __init__(self, channel: int):
        super().__init__(channel)
        self.channel = channel

    def __str__(self):
        return f"Channel {self.channel} not found in status snapshot"


@dataclass(frozen=True)
class ValidityInterval:
    """Time range over which a snapshot is current. end=None is open-ended."""
    begin: UTCDateTime
    end: Optional[UTCDateTime] = None

    def contains(self, timestamp: UTCDateTime) -> bool:
        if timestamp < self.begin:
            return False
        return self.end is None or timestamp < self.end


class StatusSnapshot:
    """
    Ordered mapping of channel -> ChannelStatus tagged with a validity interval.

    Channel keys are unique; add_or_replace_row() overwrites any existing
    entry. get_row() never defaults: an absent channel raises
    ChannelNotFoundError. find_row() is the non-raising variant.
    """

    def __init__(self, rows: Optional[List[ChannelStatus]] = None):
        self._rows: Dict[int, ChannelStatus] = {}
        self._iov: Optional[ValidityInterval] = None
        for row in rows or []:
            self.add_or_replace_row(row)

    def add_or_replace_row(self, status: ChannelStatus) -> None:
        self._rows[status.channel] = status

    def get_row(self, channel: int) -> ChannelStatus:
        row = self._rows.get(channel)
        if row is None:
            raise ChannelNotFoundError(channel)
        return row

    def find_row(self, channel: int) -> Optional[ChannelStatus]:
        return self._rows.get(channel)

    def clear(self) -> None:
        self._rows.clear()
        self._iov = None

    def set_validity_interval(self, begin: UTCDateTime, end: Optional[UTCDateTime] = None) -> None:
        self._iov = ValidityInterval(begin, end)

    @property
    def validity_interval(self) -> Optional[ValidityInterval]:
        return self._iov

    def is_valid_at(self, timestamp: UTCDateTime) -> bool:
        return self._iov is not None and self._iov.contains(timestamp)

    def channels(self) -> List[int]:
        return list(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, channel) -> bool:
        return channel in self._rows

    def __iter__(self) -> Iterator[ChannelStatus]:
        return iter(self._rows.values())

    def __repr__(self) -> str:
        return f"StatusSnapshot(rows={len(self._rows)}, iov={self._iov})"
