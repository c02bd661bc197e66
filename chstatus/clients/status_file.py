# chstatus/clients/status_file.py
import logging
from pathlib import Path
from typing import Union

import pandas as pd

from ..core.models import ChannelStatus, status_from_code
from ..core.snapshot import StatusSnapshot

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('channel', 'status')


def load_status_table(path: Union[str, Path]) -> StatusSnapshot:
    """
    Reads a channel status table from a CSV file.

    The file needs 'channel' and 'status' columns; 'status' holds the
    integer status codes. Later rows for the same channel replace earlier
    ones. Unrecognized codes map to UNKNOWN.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If a required column is missing.
    """
    path = Path(path)
    if not path.exists():
        logger.error(f"Status table not found at: {path}")
        raise FileNotFoundError(f"Status table not found at: {path}")

    df = pd.read_csv(path, comment='#', skipinitialspace=True)
    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing column(s) {missing}")

    df = df.dropna(subset=['channel'])
    snapshot = StatusSnapshot()
    for channel, raw_status in zip(df['channel'], df['status']):
        snapshot.add_or_replace_row(ChannelStatus(int(channel), status_from_code(raw_status)))

    logger.info(f"Loaded {len(snapshot)} channel statuses from {path}")
    return snapshot
