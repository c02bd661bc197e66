import json
import logging
from dataclasses import asdict
from typing import Dict, Any

from .config_loader import load_config, load_optional_section, load_filter_settings
from .db_pool import DBPool

logger = logging.getLogger(__name__)


def _censor_config(config: Dict[str, Any]) -> str:
    """
    Takes a config dictionary, censors 'password', and returns a formatted JSON string.
    """
    censored_config = {}
    for key, value in config.items():
        if "password" in str(key).lower() and value:
            censored_config[key] = f"***{str(value)[-2:]}"
        else:
            censored_config[key] = value
    return json.dumps(censored_config, indent=2, default=str)


def check_configurations(filename: str = 'config.ini') -> bool:
    """
    Loads all configs, prints them, and checks the selected status source.
    Returns True if all checks passed, False otherwise.
    """
    all_ok = True

    # --- 1. Filter settings ---
    try:
        logger.info("--- [channel_status] Configuration ---")
        settings = load_filter_settings(filename)
        logger.info(_censor_config(asdict(settings)))
        logger.info(f"Data source: {settings.data_source.value}")
    except Exception as e:
        logger.error(f"Failed to load [channel_status] config: {e}", exc_info=True)
        return False

    # --- 2. Geometry ---
    geometry_config = load_optional_section(filename, 'geometry')
    if geometry_config:
        try:
            from ..clients.geometry import WireGeometry
            geometry = WireGeometry.from_config(geometry_config)
            logger.info(f"✅ Geometry: {geometry.n_channels()} channels in {len(geometry.wires_per_plane)} planes")
            if max(geometry.plane_views) >= len(settings.rms_cut_per_view):
                logger.error(f"❌ Views {geometry.plane_views} need more RMS cuts than {settings.rms_cut_per_view}")
                all_ok = False
        except ValueError as e:
            logger.error(f"❌ Invalid [geometry] config: {e}")
            all_ok = False
    else:
        logger.warning("No [geometry] section configured.")

    # --- 3. Status source ---
    if settings.use_db:
        logger.info("--- Checking Database Connection ---")
        try:
            basic_config = load_config(filename, section='basic')
            db_type = basic_config.get('use_database', 'postgresql')
            db_creds = load_config(filename, section=db_type)
            logger.info(f"[{db_type}] Config: {_censor_config(db_creds)}")
            pool = DBPool(**{'db_type': db_type, **db_creds})
            if pool.is_db_connected():
                logger.info("✅ Database connection: OK")
            else:
                logger.error("❌ Database connection: FAILED")
                all_ok = False
        except Exception as e:
            logger.error(f"❌ Database check failed: {e}", exc_info=True)
            all_ok = False
    elif settings.use_file:
        logger.info("--- Checking Status File ---")
        try:
            from ..clients.status_file import load_status_table
            snapshot = load_status_table(settings.status_file)
            logger.info(f"✅ Status file: OK ({len(snapshot)} channels)")
        except Exception as e:
            logger.error(f"❌ Status file check failed: {e}")
            all_ok = False

    return all_ok
