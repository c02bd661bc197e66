# chstatus/services/config_loader.py
import os
import logging
from configparser import ConfigParser
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

FILTER_SECTION = 'channel_status'


def _config_path(filename: str) -> str:
    if os.path.isabs(filename):
        return filename
    module_path = os.path.dirname(os.path.abspath(__file__))
    return os.path.join(module_path, '..', '..', 'config', filename)


def load_config(filename: str = 'config.ini', section: str = 'basic') -> Dict[str, Any]:
    """
    Loads a specific section from the config.ini file.

    Args:
        filename (str): The name of the config file (default: 'config.ini').
            Relative names are looked up in the repository's config/ directory.
        section (str): The [section] in the INI file to load.

    Returns:
        Dict[str, Any]: A dictionary of the settings.

    Raises:
        FileNotFoundError: If the config.ini file cannot be found.
        Exception: If the specified section is not found in the file.
    """
    config_path = _config_path(filename)

    if not os.path.exists(config_path):
        logger.error(f"Configuration file not found at: {config_path}")
        raise FileNotFoundError(f"Configuration file not found at: {config_path}")

    parser = ConfigParser()
    parser.read(config_path)

    if not parser.has_section(section):
        logger.error(f"Section '{section}' not found in the {config_path} file")
        raise Exception(f"Section '{section}' not found in the {config_path} file")

    # Keys that should be converted to integers
    int_keys = {'cpu_number_used', 'pool_size', 'port', 'number_time_samples'}

    config: Dict[str, Any] = {}
    for key, value in parser.items(section):
        if key in int_keys and value:
            try:
                config[key] = int(value)
            except ValueError:
                logger.warning(f"Invalid integer value for '{key}': {value}. Using None.")
                config[key] = None
        else:
            config[key] = value

    return config


def load_optional_section(filename: str = 'config.ini', section: str = 'geometry') -> Dict[str, Any]:
    """Like load_config(), but returns {} when the file or section is missing."""
    try:
        return load_config(filename, section)
    except FileNotFoundError:
        return {}
    except Exception as e:
        logger.debug(f"{e}. Using defaults.")
        return {}


def load_filter_settings(filename: str = 'config.ini'):
    """
    Loads channel status and noisy-channel settings from the config file.

    If the [channel_status] section doesn't exist or any parameter is missing,
    the corresponding default value will be used.

    Args:
        filename (str): The name of the config file (default: 'config.ini').

    Returns:
        FilterSettings: FilterSettings object with values from config or defaults
    """
    from ..analysis.models import FilterSettings, DEFAULT_SETTINGS

    config_path = _config_path(filename)

    # If config doesn't exist, return defaults
    if not os.path.exists(config_path):
        logger.info(f"Config file not found at {config_path}, using default filter settings")
        return DEFAULT_SETTINGS

    parser = ConfigParser()
    parser.read(config_path)

    if not parser.has_section(FILTER_SECTION):
        logger.debug(f"No [{FILTER_SECTION}] section in config, using defaults")
        return DEFAULT_SETTINGS

    kwargs: Dict[str, Any] = {}

    for param in ('use_db', 'use_file', 'find_noisy_channels'):
        if parser.has_option(FILTER_SECTION, param):
            try:
                kwargs[param] = parser.getboolean(FILTER_SECTION, param)
            except ValueError as e:
                logger.warning(f"Invalid boolean value for '{param}': {e}. Using default.")

    for param in ('status_file', 'digit_source_label'):
        if parser.has_option(FILTER_SECTION, param):
            value = parser.get(FILTER_SECTION, param).strip()
            if value:
                kwargs[param] = value

    if parser.has_option(FILTER_SECTION, 'trunc_mean_fraction'):
        try:
            fraction = parser.getfloat(FILTER_SECTION, 'trunc_mean_fraction')
            if 0.0 < fraction < 1.0:
                kwargs['trunc_mean_fraction'] = fraction
            else:
                logger.warning(f"trunc_mean_fraction={fraction} outside (0, 1). Using default.")
        except ValueError as e:
            logger.warning(f"Invalid float value for 'trunc_mean_fraction': {e}. Using default.")

    if parser.has_option(FILTER_SECTION, 'rms_cut_per_view'):
        cuts = _parse_float_list(parser.get(FILTER_SECTION, 'rms_cut_per_view'))
        if cuts:
            kwargs['rms_cut_per_view'] = cuts
        else:
            logger.warning("Invalid 'rms_cut_per_view'. Using default.")

    default_dict = {
        'use_db': DEFAULT_SETTINGS.use_db,
        'use_file': DEFAULT_SETTINGS.use_file,
        'status_file': DEFAULT_SETTINGS.status_file,
        'find_noisy_channels': DEFAULT_SETTINGS.find_noisy_channels,
        'digit_source_label': DEFAULT_SETTINGS.digit_source_label,
        'trunc_mean_fraction': DEFAULT_SETTINGS.trunc_mean_fraction,
        'rms_cut_per_view': list(DEFAULT_SETTINGS.rms_cut_per_view),
    }
    default_dict.update(kwargs)

    logger.info(f"Loaded filter settings from {config_path} ({len(kwargs)} custom parameters)")
    return FilterSettings(**default_dict)


def _parse_float_list(value: str) -> Optional[list]:
    try:
        return [float(item) for item in value.split(',') if item.strip()]
    except ValueError:
        return None
