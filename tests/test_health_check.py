import json

from chstatus.services.health_check import _censor_config, check_configurations


def test_censor_config_hides_password():
    censored = json.loads(_censor_config({'user': 'qc', 'password': 'secret42'}))
    assert censored == {'user': 'qc', 'password': '***42'}


def test_check_file_source(tmp_path):
    status = tmp_path / "status.csv"
    status.write_text("channel,status\n0,4\n1,1\n")
    config = tmp_path / "config.ini"
    config.write_text(
        "[channel_status]\n"
        "use_file = yes\n"
        f"status_file = {status}\n"
        "[geometry]\n"
        "wires_per_plane = 2, 2, 2\n"
    )
    assert check_configurations(str(config)) is True


def test_check_fails_on_missing_status_file(tmp_path):
    config = tmp_path / "config.ini"
    config.write_text(
        "[channel_status]\n"
        "use_file = yes\n"
        f"status_file = {tmp_path / 'missing.csv'}\n"
    )
    assert check_configurations(str(config)) is False


def test_check_fails_without_enough_cuts(tmp_path):
    config = tmp_path / "config.ini"
    config.write_text(
        "[channel_status]\n"
        "rms_cut_per_view = 5.0\n"
        "[geometry]\n"
        "wires_per_plane = 2, 2\n"
        "plane_views = 0, 1\n"
    )
    assert check_configurations(str(config)) is False
