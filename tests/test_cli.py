"""Tests for the ofdm-trace command line."""

import numpy as np
import pytest

from ofdmtrace import cli
from ofdmtrace.config import TraceConfig
from ofdmtrace.harness import run_trace
from ofdmtrace.io import load_octave_text


@pytest.fixture
def short_runs(monkeypatch):
    """Replaces the 10 frame run with a 2 frame run, recording the configs."""
    configs = []

    def fake_run(config):
        configs.append(config)
        return run_trace(config.model_copy(update={"nframes": 2}))

    monkeypatch.setattr(cli, "run_trace", fake_run)
    return configs


def test_writes_trace(tmp_path, monkeypatch, short_runs):
    monkeypatch.chdir(tmp_path)
    assert cli.main([]) == 0
    assert short_runs[0].ldpc_enable
    assert short_runs[0] == TraceConfig()

    arrays = load_octave_text(str(tmp_path / cli.DEFAULT_OUTPUT))
    assert arrays["pilot_samples_c"].shape == (1, 160)
    assert arrays["detected_data_log_c"].shape == (1, 448)
    np.testing.assert_array_equal(arrays["parity_check_count_log_c"].ravel(), 112)


def test_noldpc(tmp_path, monkeypatch, short_runs):
    monkeypatch.chdir(tmp_path)
    assert cli.main(["--noldpc"]) == 0
    assert not short_runs[0].ldpc_enable


def test_unknown_option():
    with pytest.raises(SystemExit):
        cli.main(["--frames", "3"])


def test_out_of_memory(tmp_path, monkeypatch, caplog):
    def no_memory(config):
        raise MemoryError

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "run_trace", no_memory)
    assert cli.main([]) == 1
    assert "Out of memory" in caplog.text
    assert not (tmp_path / cli.DEFAULT_OUTPUT).exists()


def test_config_errors_propagate(monkeypatch):
    def bad_run(config):
        raise RuntimeError("consumed 10 samples of 5 available")

    monkeypatch.setattr(cli, "run_trace", bad_run)
    with pytest.raises(RuntimeError):
        cli.main([])
