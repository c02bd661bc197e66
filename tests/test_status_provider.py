"""
Unit tests for chstatus.analysis.status_provider.

Tests cover:
- Data source selection and base table construction
- Overlay-first status lookup
- Status set queries in Default and table-backed modes
- Noisy-channel reporting rules
- Refresh semantics in Database mode
"""
import pytest
from obspy import UTCDateTime

from chstatus.analysis.models import DataSource, FilterSettings
from chstatus.analysis.status_provider import StatusProvider
from chstatus.clients.geometry import WireGeometry
from chstatus.core.models import ChannelStatusCode
from chstatus.core.snapshot import ChannelNotFoundError
from chstatus.services.db_folder import BackingStoreUnavailable

S = ChannelStatusCode

STATUS_CSV = """channel,status
0,4
1,1
2,2
3,0
4,3
5,4
6,5
7,4
8,42
"""


class FakeFolder:
    """In-memory stand-in for DBFolder."""

    def __init__(self, intervals):
        # intervals: list of (begin, end, {channel: raw_status})
        self.intervals = intervals
        self.current = None
        self.update_calls = 0

    def update(self, timestamp):
        self.update_calls += 1
        for i, (begin, end, _) in enumerate(self.intervals):
            if begin <= timestamp < end:
                if i == self.current:
                    return False
                self.current = i
                return True
        raise BackingStoreUnavailable(f"nothing at {timestamp}")

    def validity_interval(self):
        begin, end, _ = self.intervals[self.current]
        return begin, end

    def channel_ids(self):
        return list(self.intervals[self.current][2])

    def get_named_field(self, channel, name):
        assert name == "status"
        return self.intervals[self.current][2][channel]


@pytest.fixture
def geometry():
    # 10 channels over two planes
    return WireGeometry([5, 5])


@pytest.fixture
def file_provider(tmp_path, geometry):
    path = tmp_path / "status.csv"
    path.write_text(STATUS_CSV)
    settings = FilterSettings(use_file=True, status_file=str(path))
    return StatusProvider(settings, topology=geometry)


@pytest.fixture
def default_provider(geometry):
    return StatusProvider(FilterSettings(), topology=geometry)


JAN = UTCDateTime(2024, 1, 1)
FEB = UTCDateTime(2024, 2, 1)
MAR = UTCDateTime(2024, 3, 1)


@pytest.fixture
def folder():
    return FakeFolder([
        (JAN, FEB, {0: 4, 1: 4, 2: 1, 3: 0}),
        (FEB, MAR, {0: 1, 1: 4, 2: 4, 3: 4, 4: 99}),
    ])


@pytest.fixture
def db_provider(folder, geometry):
    return StatusProvider(FilterSettings(use_db=True), topology=geometry, folder=folder)


class TestConstruction:

    def test_data_source_priority(self):
        assert FilterSettings(use_db=True, use_file=True).data_source == DataSource.DATABASE
        assert FilterSettings(use_file=True).data_source == DataSource.FILE
        assert FilterSettings().data_source == DataSource.DEFAULT

    def test_default_mode_marks_every_channel_good(self, default_provider):
        assert len(default_provider.base) == 10
        assert all(row.status == S.GOOD for row in default_provider.base)

    def test_default_mode_without_enumeration_keeps_exemplar(self):
        provider = StatusProvider(FilterSettings(), topology=None)
        assert provider.base.channels() == [0]
        assert provider.get_status(0).status == S.GOOD

    def test_database_mode_requires_folder(self):
        with pytest.raises(ValueError):
            StatusProvider(FilterSettings(use_db=True))

    def test_file_mode_requires_path(self):
        with pytest.raises(ValueError):
            StatusProvider(FilterSettings(use_file=True))

    def test_file_mode_maps_unknown_codes(self, file_provider):
        assert file_provider.get_status(8).status == S.UNKNOWN
        assert file_provider.get_status(6).status == S.UNKNOWN


class TestLookup:

    def test_missing_channel_raises(self, file_provider):
        with pytest.raises(ChannelNotFoundError):
            file_provider.get_status(9)

    def test_overlay_wins_over_base(self, file_provider):
        assert file_provider.get_status(0).status == S.GOOD
        assert file_provider.report_noisy(0)
        assert file_provider.get_status(0).status == S.NOISY

    def test_predicates(self, file_provider):
        assert file_provider.is_bad(1)
        assert file_provider.is_bad(2)
        assert not file_provider.is_bad(0)
        assert not file_provider.is_present(3)
        assert file_provider.is_present(6)
        # Unknown to both layers
        assert not file_provider.is_bad(9)
        assert not file_provider.is_present(9)
        assert file_provider.is_good(5)
        assert file_provider.is_noisy(4)


class TestStatusSets:

    def test_table_backed_queries(self, file_provider):
        assert file_provider.good_channels() == {0, 5, 7}
        assert file_provider.dead_channels() == {1}
        assert file_provider.low_noise_channels() == {2}
        assert file_provider.noisy_channels() == {4}
        assert file_provider.get_channels_with_status(S.DISCONNECTED) == {3}
        assert file_provider.get_channels_with_status(S.UNKNOWN) == {6, 8}

    def test_bad_is_union_of_dead_and_low_noise(self, file_provider):
        bad = file_provider.bad_channels()
        assert bad == file_provider.dead_channels() | file_provider.low_noise_channels()
        assert bad == {1, 2}

    def test_noisy_query_includes_overlay(self, file_provider):
        file_provider.report_noisy(7)
        assert file_provider.noisy_channels() == {4, 7}
        assert 7 not in file_provider.good_channels()

    def test_default_mode_is_analytic(self, default_provider):
        assert default_provider.good_channels() == set(range(10))
        for status in (S.DEAD, S.LOWNOISE, S.NOISY, S.DISCONNECTED, S.UNKNOWN):
            assert default_provider.get_channels_with_status(status) == set()
        assert default_provider.bad_channels() == set()

    def test_default_mode_matches_table_scan(self, tmp_path, geometry):
        path = tmp_path / "all_good.csv"
        path.write_text("channel,status\n" + "".join(f"{ch},4\n" for ch in range(10)))
        scanned = StatusProvider(FilterSettings(use_file=True, status_file=str(path)), topology=geometry)
        analytic = StatusProvider(FilterSettings(), topology=geometry)
        for status in S:
            assert scanned.get_channels_with_status(status) == analytic.get_channels_with_status(status)

    def test_summary_counts(self, file_provider):
        counts = file_provider.summary()
        assert counts['GOOD'] == 3
        assert counts['UNKNOWN'] == 2
        assert counts['MISSING'] == 1
        assert sum(counts.values()) == 10


class TestReportNoisy:

    def test_bad_channels_are_not_flagged(self, file_provider):
        assert not file_provider.report_noisy(1)
        assert not file_provider.report_noisy(2)
        assert file_provider.get_status(1).status == S.DEAD
        assert len(file_provider.overlay) == 0

    def test_disconnected_and_unknown_channels_are_not_flagged(self, file_provider):
        assert not file_provider.report_noisy(3)
        assert not file_provider.report_noisy(9)
        assert file_provider.new_noisy_channels() == set()

    def test_overlay_only_holds_noisy(self, file_provider):
        for channel in range(10):
            file_provider.report_noisy(channel)
        assert file_provider.new_noisy_channels() == {0, 4, 5, 6, 7, 8}
        assert all(row.status == S.NOISY for row in file_provider.overlay)

    def test_refresh_clears_overlay(self, file_provider):
        file_provider.report_noisy(5)
        assert file_provider.refresh(UTCDateTime(2024, 1, 1)) is False
        assert file_provider.get_status(5).status == S.GOOD
        assert file_provider.new_noisy_channels() == set()

    def test_refresh_clears_overlay_in_default_mode(self, default_provider):
        default_provider.report_noisy(3)
        default_provider.refresh(UTCDateTime(2024, 1, 1))
        assert default_provider.get_status(3).status == S.GOOD


class TestDatabaseRefresh:

    def test_first_refresh_loads_base(self, db_provider):
        assert db_provider.refresh(UTCDateTime(2024, 1, 10)) is True
        assert db_provider.get_status(2).status == S.DEAD
        assert db_provider.base.validity_interval.begin == JAN
        assert db_provider.base.validity_interval.end == FEB

    def test_refresh_within_interval_keeps_base(self, db_provider):
        db_provider.refresh(UTCDateTime(2024, 1, 10))
        base = db_provider.base
        db_provider.report_noisy(0)

        assert db_provider.refresh(UTCDateTime(2024, 1, 20)) is False
        assert db_provider.base is base
        assert db_provider.get_status(0).status == S.GOOD

    def test_new_interval_replaces_base(self, db_provider):
        db_provider.refresh(UTCDateTime(2024, 1, 10))
        assert db_provider.refresh(UTCDateTime(2024, 2, 10)) is True
        assert db_provider.get_status(0).status == S.DEAD
        assert db_provider.get_status(2).status == S.GOOD
        assert db_provider.get_status(4).status == S.UNKNOWN

    def test_backing_store_failure_keeps_stale_base(self, db_provider):
        db_provider.refresh(UTCDateTime(2024, 1, 10))
        db_provider.report_noisy(1)

        assert db_provider.refresh(UTCDateTime(2025, 1, 1)) is False
        assert db_provider.get_status(2).status == S.DEAD
        # Overlay is cleared even when the refresh fails
        assert db_provider.get_status(1).status == S.GOOD

    def test_missing_channel_after_reload(self, db_provider):
        db_provider.refresh(UTCDateTime(2024, 1, 10))
        with pytest.raises(ChannelNotFoundError):
            db_provider.get_status(4)
        assert 4 not in db_provider.good_channels()
