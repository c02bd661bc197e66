"""Helper functions for workflow processing."""
import logging
import multiprocessing
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..analysis.models import FilterSettings, DataSource
from ..analysis.noisy_detector import NoisyChannelDetector
from ..analysis.status_provider import StatusProvider
from ..clients.detector import DetectorProperties
from ..clients.geometry import WireGeometry
from ..services.config_loader import load_config, load_optional_section, load_filter_settings
from ..services.db_folder import DBFolder
from ..services.db_pool import DBPool
from ..services.repository import StatusRepository
from .cycle_processor import ChannelFilterService

logger = logging.getLogger(__name__)


def calculate_process_count(x, base=2):
    """Calculates the number of processes to use for multiprocessing.

    Args:
        x: Suggested number of processes
        base: Rounding base (default: 2)

    Returns:
        Integer number of processes, clamped between 1 and max_cpus/3
    """
    max_value = max(1, multiprocessing.cpu_count() // 3)
    rounded_value = base * round(x / base)
    return max(1, min(max_value, rounded_value))


def collect_event_paths(inputs: List[str]) -> List[str]:
    """Expands files and directories into a sorted list of .npz event files."""
    paths = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            paths.extend(sorted(str(p) for p in path.glob('*.npz')))
        elif path.exists():
            paths.append(str(path))
        else:
            logger.warning(f"Input not found: {item}. Skipping.")
    return paths


def build_backing_store(basic_config: Dict[str, Any], filename: str = 'config.ini') -> DBFolder:
    """Creates the database folder from the [basic] use_database setting."""
    db_type = basic_config.get('use_database', 'postgresql')
    db_credentials = load_config(filename, section=db_type)
    pool = DBPool(**{'db_type': db_type, **db_credentials})
    return DBFolder(StatusRepository(pool, db_type))


def build_service(filename: str = 'config.ini',
                  settings: Optional[FilterSettings] = None,
                  log_level: int = logging.WARNING,
                  log_file_path: Optional[str] = None) -> ChannelFilterService:
    """
    Wires the provider, detector and collaborators from the config file.

    Missing [basic], [geometry] or [detector] sections fall back to defaults.
    """
    if settings is None:
        settings = load_filter_settings(filename)
    basic_config = load_optional_section(filename, 'basic')
    geometry_config = load_optional_section(filename, 'geometry')
    detector_config = load_optional_section(filename, 'detector')

    if geometry_config.get('wires_per_plane'):
        topology = WireGeometry.from_config(geometry_config)
    else:
        logger.warning("No [geometry] wires_per_plane configured; using a 3-plane, 1-wire stub topology.")
        topology = WireGeometry([1, 1, 1])
    detector_properties = DetectorProperties.from_config(detector_config)

    folder = None
    if settings.data_source == DataSource.DATABASE:
        folder = build_backing_store(basic_config, filename)

    provider = StatusProvider(settings, topology=topology, folder=folder)
    detector = NoisyChannelDetector(provider, topology, settings)

    processes = basic_config.get('cpu_number_used') or calculate_process_count(topology.n_channels() // 2000)
    return ChannelFilterService(
        provider, detector, detector_properties, settings,
        processes=processes, log_level=log_level, log_file_path=log_file_path
    )
