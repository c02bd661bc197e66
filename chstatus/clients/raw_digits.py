# chstatus/clients/raw_digits.py
"""
Raw per-channel ADC samples and the event files that carry them.

An event file is a NumPy .npz archive holding a 'timestamp' (ISO string)
and, for every source label, the arrays:

    <label>/channels      channel id per digit
    <label>/compression   Compression code per digit
    <label>/samples       declared uncompressed sample count per digit
    <label>/adcs_<i>      compressed payload of digit i
"""
import zlib
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
from obspy import UTCDateTime

logger = logging.getLogger(__name__)


class Compression(IntEnum):
    NONE = 0
    ZLIB = 1


@dataclass
class RawDigit:
    """Compressed samples of one channel for one cycle."""
    channel: int
    adcs: np.ndarray
    compression: Compression
    samples: int


@dataclass
class RawEvent:
    """One processing cycle read from an event file."""
    path: str
    timestamp: UTCDateTime
    digits: Optional[List[RawDigit]]


def compress(samples, compression: Compression) -> np.ndarray:
    """Encodes int16 samples. ZLIB payloads are returned as a uint8 array."""
    data = np.asarray(samples, dtype=np.int16)
    if compression == Compression.NONE:
        return data.copy()
    if compression == Compression.ZLIB:
        payload = zlib.compress(data.astype('<i2').tobytes())
        return np.frombuffer(payload, dtype=np.uint8).copy()
    raise ValueError(f"Unsupported compression: {compression!r}")


def uncompress(adcs, compression, max_length: Optional[int] = None) -> np.ndarray:
    """
    Decodes a compressed payload into int16 samples.

    At most `max_length` samples are returned.

    Raises:
        ValueError: for an unknown codec or a corrupt payload.
    """
    try:
        codec = Compression(int(compression))
    except ValueError:
        raise ValueError(f"Unsupported compression: {compression!r}")

    if codec == Compression.NONE:
        samples = np.asarray(adcs, dtype=np.int16)
    else:
        try:
            raw = zlib.decompress(np.asarray(adcs, dtype=np.uint8).tobytes())
        except zlib.error as e:
            raise ValueError(f"Corrupt zlib payload: {e}")
        if len(raw) % 2:
            raise ValueError(f"Corrupt zlib payload: odd byte count {len(raw)}")
        samples = np.frombuffer(raw, dtype='<i2').astype(np.int16)

    if max_length is not None:
        samples = samples[:max_length]
    return samples


def read_event(path: Union[str, Path], label: str = "daq") -> RawEvent:
    """
    Reads one event file.

    If the file holds no digits for `label`, RawEvent.digits is None.
    """
    with np.load(str(path), allow_pickle=False) as archive:
        if 'timestamp' not in archive.files:
            raise ValueError(f"{path}: no 'timestamp' entry")
        timestamp = UTCDateTime(str(archive['timestamp']))

        channels_key = f"{label}/channels"
        if channels_key not in archive.files:
            logger.debug(f"{path}: no raw digits for label '{label}'")
            return RawEvent(str(path), timestamp, None)

        channels = archive[channels_key]
        codecs = archive[f"{label}/compression"]
        declared = archive[f"{label}/samples"]
        digits = []
        for i, channel in enumerate(channels):
            digits.append(RawDigit(
                channel=int(channel),
                adcs=archive[f"{label}/adcs_{i}"],
                compression=Compression(int(codecs[i])),
                samples=int(declared[i]),
            ))

    logger.debug(f"{path}: read {len(digits)} raw digits for label '{label}'")
    return RawEvent(str(path), timestamp, digits)


def write_event(path: Union[str, Path], timestamp: UTCDateTime,
                digits: List[RawDigit], label: str = "daq") -> None:
    """Writes an event file readable by read_event()."""
    arrays = {
        'timestamp': np.array(str(timestamp)),
        f"{label}/channels": np.array([d.channel for d in digits], dtype=np.int64),
        f"{label}/compression": np.array([int(d.compression) for d in digits], dtype=np.int64),
        f"{label}/samples": np.array([d.samples for d in digits], dtype=np.int64),
    }
    for i, digit in enumerate(digits):
        arrays[f"{label}/adcs_{i}"] = np.asarray(digit.adcs)

    np.savez_compressed(str(path), **arrays)
    logger.debug(f"Wrote {len(digits)} raw digits to {path}")
