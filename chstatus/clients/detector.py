# chstatus/clients/detector.py
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

DEFAULT_NUMBER_TIME_SAMPLES = 9600


class DetectorProperties:
    """Readout timing configuration."""

    def __init__(self, number_time_samples: int = DEFAULT_NUMBER_TIME_SAMPLES):
        if number_time_samples <= 0:
            raise ValueError(f"number_time_samples must be positive, got {number_time_samples}")
        self.number_time_samples = int(number_time_samples)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DetectorProperties":
        value = config.get('number_time_samples')
        if value in (None, ''):
            logger.debug(f"number_time_samples not set, using {DEFAULT_NUMBER_TIME_SAMPLES}")
            return cls()
        return cls(int(value))

    def max_sample_count(self) -> int:
        return self.number_time_samples
