# chstatus/core/models.py
"""
Channel status value types.

The integer values of ChannelStatusCode are the codes stored in the
backing store's 'status' field.
"""
import logging
from dataclasses import dataclass
from enum import IntEnum

logger = logging.getLogger(__name__)


class ChannelStatusCode(IntEnum):
    DISCONNECTED = 0
    DEAD = 1
    LOWNOISE = 2
    NOISY = 3
    GOOD = 4
    UNKNOWN = 5


# Statuses that mark a channel as unusable
BAD_STATUSES = (ChannelStatusCode.DEAD, ChannelStatusCode.LOWNOISE)


@dataclass(frozen=True)
class ChannelStatus:
    """Status of a single channel. Replaced, never mutated."""
    channel: int
    status: ChannelStatusCode = ChannelStatusCode.UNKNOWN

    @property
    def is_bad(self) -> bool:
        return self.status in BAD_STATUSES

    @property
    def is_present(self) -> bool:
        return self.status != ChannelStatusCode.DISCONNECTED

    @property
    def is_good(self) -> bool:
        return self.status == ChannelStatusCode.GOOD

    @property
    def is_noisy(self) -> bool:
        return self.status == ChannelStatusCode.NOISY


def status_from_code(raw) -> ChannelStatusCode:
    """
    Maps a raw backing-store value to a status by exact value.

    Unrecognized values (including anything that is not an integer)
    map to UNKNOWN.
    """
    if isinstance(raw, bool):
        logger.debug(f"Boolean status value {raw!r} mapped to UNKNOWN")
        return ChannelStatusCode.UNKNOWN
    try:
        as_int = int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Malformed status value {raw!r}, using UNKNOWN")
        return ChannelStatusCode.UNKNOWN

    if as_int != raw:
        logger.warning(f"Non-integer status value {raw!r}, using UNKNOWN")
        return ChannelStatusCode.UNKNOWN

    try:
        return ChannelStatusCode(as_int)
    except ValueError:
        logger.debug(f"Unrecognized status code {as_int}, using UNKNOWN")
        return ChannelStatusCode.UNKNOWN
