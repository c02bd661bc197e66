import logging
import sys
import os
import re


class WarningMessageFilter(logging.Filter):
    """Drops known-harmless warnings and trims captured warning messages."""

    ignore_phrases = [
        "Mean of empty slice",
        "invalid value encountered in scalar divide",
        "overflow encountered in scalar",
    ]

    def filter(self, record):
        if not hasattr(record, 'msg'):
            return True

        msg = str(record.msg).strip()
        if any(phrase in msg for phrase in self.ignore_phrases):
            return False

        if record.levelno == logging.WARNING:
            # Drop the source line printed under captured warnings
            if '\n' in msg:
                msg = msg.split('\n')[0]
                record.msg = msg

            # "/path/file.py:123: RuntimeWarning: text" -> "RuntimeWarning: text"
            match = re.search(r':\d+:\s*([^:]+):\s*(.*)$', msg)
            if match:
                record.msg = f"{match.group(1).strip()}: {match.group(2).strip()}"

        return True


class CycleContextFilter(logging.Filter):
    """Makes sure every record has a cycle_id for the worker format."""

    def filter(self, record):
        if not hasattr(record, 'cycle_id'):
            record.cycle_id = "SYSTEM"
        return True


def setup_main_logging(verbosity_level: int, log_name: str, log_dir: str = "logs/log"):
    """
    Configures the root logger for the main process.
    Logs to both the console and a named file.

    Verbosity levels:
    0 (default): WARNING
    1 (-v):      INFO
    2+ (-vv...): DEBUG
    """
    if verbosity_level == 0:
        log_level = logging.WARNING
    elif verbosity_level == 1:
        log_level = logging.INFO
    else:
        log_level = logging.DEBUG

    os.makedirs(log_dir, exist_ok=True)

    # Append (1), (2), ... when a log with the same name exists
    log_file_path = os.path.join(log_dir, f"{log_name}.log")
    counter = 1
    while os.path.exists(log_file_path):
        log_file_path = os.path.join(log_dir, f"{log_name}({counter}).log")
        counter += 1

    warning_filter = WarningMessageFilter()
    handlers = [logging.StreamHandler(sys.stdout), logging.FileHandler(log_file_path)]
    for handler in handlers:
        handler.addFilter(warning_filter)

    logging.basicConfig(
        level=log_level,
        format="[%(asctime)s] [%(name)-36s] [%(levelname)-8s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers
    )

    logging.captureWarnings(True)
    logging.getLogger("obspy").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Main logger configured. Level: {logging.getLevelName(log_level)}. Log file: {log_file_path}"
    )
    return log_level, log_file_path


def initialize_worker_logger(log_level: int, log_file_path: str = None):
    """
    Initializes the logging system for a pool worker process.
    This should be called ONCE at the start of the worker process.
    """
    logging.captureWarnings(True)

    formatter = logging.Formatter(
        "[%(asctime)s] [%(cycle_id)-36s] [%(levelname)-8s] %(message)s",
        "%Y-%m-%d %H:%M:%S"
    )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path))
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(WarningMessageFilter())
        handler.addFilter(CycleContextFilter())

    logger = logging.getLogger("worker")
    logger.setLevel(log_level)
    logger.propagate = False
    logger.handlers = list(handlers)

    warnings_logger = logging.getLogger("py.warnings")
    warnings_logger.setLevel(logging.WARNING)
    warnings_logger.propagate = False
    warnings_logger.handlers = list(handlers)

    return logger


def get_cycle_logger(cycle_id: str):
    """
    Returns a LoggerAdapter that injects the cycle id into log messages.
    Uses the 'worker' logger initialized by initialize_worker_logger.
    """
    logger = logging.getLogger("worker")
    return logging.LoggerAdapter(logger, {"cycle_id": cycle_id})
