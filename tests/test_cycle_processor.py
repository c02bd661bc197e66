"""
Unit tests for chstatus.workflows.cycle_processor.

Tests cover:
- Full cycles over raw digits
- Cycle boundaries (overlay reset)
- Skipped detection (disabled, missing digits, bad codecs)
- Sample bound across a cycle
- Reader gating while a cycle is running
- Process-pool verdicts
"""
import threading

import pytest
import numpy as np
from obspy import UTCDateTime

from chstatus.analysis.models import FilterSettings
from chstatus.analysis.noisy_detector import NoisyChannelDetector
from chstatus.analysis.status_provider import StatusProvider
from chstatus.clients.detector import DetectorProperties
from chstatus.clients.geometry import WireGeometry
from chstatus.clients.raw_digits import Compression, RawDigit, compress
from chstatus.core.models import ChannelStatusCode
from chstatus.workflows.cycle_processor import ChannelFilterService

NOISY = np.tile([-20, 20], 50).astype(np.int16)
QUIET = np.zeros(100, dtype=np.int16)

T0 = UTCDateTime(2024, 5, 1, 0, 0, 0)
T1 = UTCDateTime(2024, 5, 1, 0, 0, 5)


def make_digit(channel, samples, compression=Compression.ZLIB, declared=None):
    declared = len(samples) if declared is None else declared
    return RawDigit(channel, compress(samples, compression), compression, declared)


def make_service(settings=None, processes=1, tmp_path=None, status_rows=None):
    settings = settings or FilterSettings(find_noisy_channels=True)
    geometry = WireGeometry([4, 4, 4])
    if status_rows is not None:
        path = tmp_path / "status.csv"
        path.write_text("channel,status\n" + "\n".join(f"{c},{s}" for c, s in status_rows))
        settings = FilterSettings(use_file=True, status_file=str(path),
                                  find_noisy_channels=settings.find_noisy_channels)
    provider = StatusProvider(settings, topology=geometry)
    detector = NoisyChannelDetector(provider, geometry, settings)
    return ChannelFilterService(provider, detector, DetectorProperties(100), settings,
                                processes=processes)


@pytest.fixture
def service():
    return make_service()


def test_process_cycle_flags_noisy_channels(service):
    digits = [make_digit(0, NOISY), make_digit(1, QUIET), make_digit(9, NOISY, Compression.NONE)]
    result = service.process_cycle(T0, digits)

    assert result.detection_run
    assert result.analyzed == 3
    assert result.noisy == {0, 9}
    assert service.get_status(0).status == ChannelStatusCode.NOISY
    assert service.get_status(1).status == ChannelStatusCode.GOOD


def test_noisy_flags_do_not_survive_next_cycle(service):
    service.process_cycle(T0, [make_digit(0, NOISY)])
    result = service.process_cycle(T1, [make_digit(0, QUIET)])

    assert result.noisy == set()
    assert service.get_status(0).status == ChannelStatusCode.GOOD


def test_redetected_channel_stays_noisy(service):
    service.process_cycle(T0, [make_digit(0, NOISY)])
    service.process_cycle(T1, [make_digit(0, NOISY)])
    assert service.get_status(0).status == ChannelStatusCode.NOISY


def test_detection_disabled_only_refreshes(service):
    service = make_service(FilterSettings(find_noisy_channels=False))
    result = service.process_cycle(T0, [make_digit(0, NOISY)])

    assert not result.detection_run
    assert result.analyzed == 0
    assert service.get_status(0).status == ChannelStatusCode.GOOD


def test_missing_digits_skip_detection(service):
    service.process_cycle(T0, [make_digit(0, NOISY)])
    result = service.process_cycle(T1, None)

    assert not result.detection_run
    # The refresh still happened
    assert service.get_status(0).status == ChannelStatusCode.GOOD


def test_bad_channels_are_not_uncompressed(tmp_path, mocker):
    service = make_service(tmp_path=tmp_path,
                           status_rows=[(0, 1), (1, 0), (2, 4)])
    digits = [make_digit(0, NOISY), make_digit(1, NOISY), make_digit(5, NOISY)]
    spy = mocker.spy(np, "frombuffer")
    result = service.process_cycle(T0, digits)

    assert result.analyzed == 0
    assert result.noisy == set()
    spy.assert_not_called()


def test_undecodable_digit_is_skipped(service):
    broken = RawDigit(2, np.frombuffer(b"garbage!", dtype=np.uint8), Compression.ZLIB, 100)
    result = service.process_cycle(T0, [broken, make_digit(3, NOISY)])

    assert result.analyzed == 2
    assert result.noisy == {3}


def test_sample_bound_shrinks_within_cycle(service):
    # Quiet first half, noisy second half
    mixed = np.concatenate([np.zeros(50, dtype=np.int16), NOISY[:50]])
    assert service.detector.is_noisy(1, mixed)

    short = make_digit(0, QUIET[:50])
    result = service.process_cycle(T0, [short, make_digit(1, mixed)])

    # Channel 1 is cut to the 50 samples declared by channel 0
    assert result.noisy == set()

    # The bound resets on the next cycle
    result = service.process_cycle(T1, [make_digit(1, mixed)])
    assert result.noisy == {1}


def test_analyze_uncompressed_samples(service):
    with service.cycle(T0) as svc:
        assert svc.analyze(4, NOISY)
        assert not svc.analyze(5, QUIET)
    assert service.noisy_channels() == set()  # Default mode queries are analytic
    assert service.get_status(4).status == ChannelStatusCode.NOISY
    assert service.provider.new_noisy_channels() == {4}


def test_readers_wait_for_cycle_to_finish(service):
    seen = {}
    cycle_started = threading.Event()

    def reader():
        cycle_started.wait()
        seen['status'] = service.get_status(6).status

    thread = threading.Thread(target=reader)
    thread.start()
    with service.cycle(T0) as svc:
        cycle_started.set()
        thread.join(timeout=0.2)
        assert thread.is_alive()
        svc.analyze(6, NOISY)

    thread.join(timeout=5)
    assert not thread.is_alive()
    assert seen['status'] == ChannelStatusCode.NOISY


def test_process_pool_matches_serial():
    digits = [make_digit(ch, NOISY if ch % 3 == 0 else QUIET) for ch in range(12)]

    serial = make_service().process_cycle(T0, digits)
    parallel = make_service(processes=2).process_cycle(T0, digits)

    assert parallel.noisy == serial.noisy == {0, 3, 6, 9}
    assert parallel.analyzed == serial.analyzed == 12


def test_read_accessors(tmp_path):
    service = make_service(tmp_path=tmp_path, status_rows=[(0, 1), (1, 2), (2, 0), (3, 4)])
    service.process_cycle(T0, [make_digit(3, NOISY)])

    assert service.bad_channels() == {0, 1}
    assert service.is_bad(0)
    assert not service.is_present(2)
    assert service.noisy_channels() == {3}
    assert service.good_channels() == set()
    assert service.get_channels_with_status(ChannelStatusCode.DISCONNECTED) == {2}
