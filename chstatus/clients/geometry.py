# chstatus/clients/geometry.py
import bisect
import logging
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class WireGeometry:
    """
    Readout topology: planes of wires, numbered plane by plane.

    Channel 0 is wire 0 of plane 0; the first channel of plane p follows
    the last wire of plane p-1. Each plane belongs to a view, which selects
    the RMS cut applied to its channels.
    """

    def __init__(self, wires_per_plane: List[int], plane_views: Optional[List[int]] = None):
        if not wires_per_plane:
            raise ValueError("At least one plane is required")
        if any(n <= 0 for n in wires_per_plane):
            raise ValueError(f"Wire counts must be positive, got {wires_per_plane}")

        self.wires_per_plane = [int(n) for n in wires_per_plane]
        if plane_views is None:
            plane_views = list(range(len(self.wires_per_plane)))
        if len(plane_views) != len(self.wires_per_plane):
            raise ValueError(
                f"{len(plane_views)} plane views given for {len(self.wires_per_plane)} planes"
            )
        self.plane_views = [int(v) for v in plane_views]

        # First channel of each plane
        self._offsets = []
        first = 0
        for n_wires in self.wires_per_plane:
            self._offsets.append(first)
            first += n_wires
        self._n_channels = first
        logger.debug(f"WireGeometry: {len(self.wires_per_plane)} planes, {self._n_channels} channels")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "WireGeometry":
        """Builds a geometry from a [geometry] config section."""
        wires = _parse_int_list(config.get('wires_per_plane', ''))
        views_str = config.get('plane_views')
        views = _parse_int_list(views_str) if views_str else None
        return cls(wires, views)

    def n_channels(self) -> int:
        return self._n_channels

    def all_channel_ids(self) -> List[int]:
        return list(range(self._n_channels))

    def location_of(self, channel: int) -> Tuple[int, int]:
        """Returns (plane, wire) for a channel."""
        if not 0 <= channel < self._n_channels:
            raise ValueError(f"Channel {channel} outside [0, {self._n_channels})")
        plane = bisect.bisect_right(self._offsets, channel) - 1
        return plane, channel - self._offsets[plane]

    def view_of(self, channel: int) -> int:
        plane, _ = self.location_of(channel)
        return self.plane_views[plane]

    def channel_from_location(self, plane: int, wire: int) -> int:
        if not 0 <= plane < len(self.wires_per_plane):
            raise ValueError(f"Plane {plane} does not exist")
        if not 0 <= wire < self.wires_per_plane[plane]:
            raise ValueError(f"Wire {wire} does not exist in plane {plane}")
        return self._offsets[plane] + wire


def _parse_int_list(value: str) -> List[int]:
    return [int(item) for item in str(value).split(',') if item.strip()]
