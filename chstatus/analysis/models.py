# chstatus/analysis/models.py
"""
Configuration models for channel status tracking and noisy-channel filtering.

This module contains dataclasses used by the provider and the detector,
separating configuration from the analysis logic.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class DataSource(Enum):
    DATABASE = "database"
    FILE = "file"
    DEFAULT = "default"


@dataclass
class FilterSettings:
    """
    Settings for the status provider and the noisy-channel detector.

    Data source priority is database > file > default.
    """
    # Data source selection
    use_db: bool = False
    use_file: bool = False
    status_file: Optional[str] = None

    # Noisy-channel detection
    find_noisy_channels: bool = False
    digit_source_label: str = "daq"
    trunc_mean_fraction: float = 0.1
    rms_cut_per_view: List[float] = field(default_factory=lambda: [5.0, 5.0, 3.0])

    def __post_init__(self):
        if not 0.0 < self.trunc_mean_fraction < 1.0:
            raise ValueError(
                f"trunc_mean_fraction must be in (0, 1), got {self.trunc_mean_fraction}"
            )
        self.rms_cut_per_view = [float(cut) for cut in self.rms_cut_per_view]

    @property
    def data_source(self) -> DataSource:
        if self.use_db:
            return DataSource.DATABASE
        if self.use_file:
            return DataSource.FILE
        return DataSource.DEFAULT


DEFAULT_SETTINGS = FilterSettings()
