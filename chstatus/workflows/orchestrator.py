"""Main workflow orchestrator for processing a sequence of event files."""
import os
import logging
from datetime import datetime
from typing import List, Optional

import pandas as pd

from ..clients.raw_digits import read_event
from .cycle_processor import ChannelFilterService, CycleResult

logger = logging.getLogger(__name__)


def run_processing_workflow(event_paths: List[str], service: ChannelFilterService,
                            summary_csv: Optional[str] = None) -> List[CycleResult]:
    """
    Runs one processing cycle per event file, in the given order.

    This is the main entry point called by chstatus_cli.py.

    Args:
        event_paths: Event files (.npz) to process
        service: Configured ChannelFilterService
        summary_csv: Optional path of a per-cycle summary CSV

    Returns:
        List of CycleResult, one per event that could be read
    """
    logger.info(f"--- Starting Main Workflow over {len(event_paths)} events ---")
    dt_start = datetime.now()
    label = service.settings.digit_source_label

    results = []
    rows = []
    for path in event_paths:
        logger.info(f"Processing event: {path}")
        try:
            event = read_event(path, label)
        except Exception as e:
            logger.error(f"Failed to read {path}: {e}. Skipping to next event.")
            continue

        result = service.process_cycle(event.timestamp, event.digits)
        results.append(result)

        noisy = sorted(result.noisy)
        if result.noisy:
            logger.info(f"{path}: {len(noisy)} noisy channels: {noisy}")
        else:
            logger.info(f"{path}: no new noisy channels ({result.analyzed} analyzed)")

        rows.append({
            'event': os.path.basename(path),
            'timestamp': str(event.timestamp),
            'base_reloaded': result.base_reloaded,
            'detection_run': result.detection_run,
            'analyzed': result.analyzed,
            'num_noisy': len(noisy),
            'noisy_channels': ' '.join(str(ch) for ch in noisy),
            'num_bad': len(service.bad_channels()),
        })

    if results:
        logger.info(f"Channel status after last cycle: {service.status_summary()}")

    if summary_csv and rows:
        write_summary(rows, summary_csv)

    logger.info(f"--- Main Workflow Finished ({datetime.now() - dt_start}) ---")
    return results


def write_summary(rows: List[dict], summary_csv: str) -> None:
    """Writes the per-cycle summary rows to a CSV file."""
    os.makedirs(os.path.dirname(os.path.abspath(summary_csv)), exist_ok=True)
    pd.DataFrame(rows).to_csv(summary_csv, index=False)
    logger.info(f"Cycle summary written to {summary_csv}")
