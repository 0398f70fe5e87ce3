import sys
import os
import logging

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from config import get_settings
from main import main


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    for name in ("TX_ENGINE_STRICT", "TX_ENGINE_LOG_LEVEL", "TX_ENGINE_OUTPUT_PRECISION"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def write_csv(tmp_path, *rows):
    csv_file = tmp_path / "test.csv"
    csv_file.write_text("\n".join(("type, client, tx, amount",) + rows))
    return str(csv_file)


class TestMain:
    def test_basic_transactions(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
        )

        assert main([path]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,1.5,0,1.5,false\n"
            "2,2,0,2,false\n"
        )

    def test_worked_example(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 5.0",
            "deposit, 2, 2, 3.0",
            "withdrawal, 1, 3, 1.5",
            "dispute, 1, 1,",
            "chargeback, 1, 1,",
        )

        assert main([path, "--strict"]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,3.5,0,3.5,true\n"
            "2,3,0,3,false\n"
        )

    def test_lenient_skips_noisy_disputes(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 99,",
            "dispute, 2, 1,",
            "resolve, 1, 1,",
            "dispute, 1, 1, 3.0",
            "withdrawal, 1, 2, 40.0",
        )

        assert main([path, "--lenient"]) == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,60,0,60,false\n"
        )

    def test_strict_aborts_without_report(self, tmp_path, capsys, caplog):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "dispute, 1, 99,",
        )

        with caplog.at_level(logging.ERROR):
            assert main([path, "--strict"]) == 1
        assert capsys.readouterr().out == ""
        assert "tx=99" in caplog.text

    def test_strict_mode_from_environment(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("TX_ENGINE_STRICT", "true")
        get_settings.cache_clear()
        path = write_csv(tmp_path, "deposit, 1, 1, 1.0", "resolve, 1, 1,")

        assert main([path]) == 1
        assert capsys.readouterr().out == ""

    def test_lenient_flag_overrides_environment(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("TX_ENGINE_STRICT", "true")
        get_settings.cache_clear()
        path = write_csv(tmp_path, "deposit, 1, 1, 1.0", "resolve, 1, 1,")

        assert main([path, "--lenient"]) == 0
        assert "1,1,0,1,false" in capsys.readouterr().out

    def test_insufficient_funds_always_fatal(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 50.0",
            "withdrawal, 1, 2, 100.0",
        )

        assert main([path, "--lenient"]) == 1
        assert capsys.readouterr().out == ""

    def test_duplicate_deposit_always_fatal(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 100.0",
            "deposit, 1, 1, 100.0",
        )

        assert main([path]) == 1
        assert capsys.readouterr().out == ""

    def test_negative_deposit_fatal(self, tmp_path, capsys):
        path = write_csv(tmp_path, "deposit, 1, 1, -100.0")
        assert main([path]) == 1

    def test_decimal_output_truncated(self, tmp_path, capsys):
        path = write_csv(
            tmp_path,
            "deposit, 1, 1, 1.23456",
            "deposit, 1, 2, 0.0001",
        )

        assert main([path]) == 0
        assert "1,1.2346,0,1.2346,false" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.csv")]) == 1
        assert capsys.readouterr().out == ""

    def test_conflicting_flags(self, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main([write_csv(tmp_path), "--strict", "--lenient"])
        assert excinfo.value.code == 2

    def test_oversized_amount_fatal_without_report(self, tmp_path, capsys):
        path = write_csv(tmp_path, "deposit, 2, 1, 5", "deposit, 1, 2, 100000000000000000000000000")

        assert main([path]) == 1
        assert capsys.readouterr().out == ""

    def test_log_level_flag_case_insensitive(self, tmp_path, capsys):
        path = write_csv(tmp_path, "deposit, 1, 1, 1.0")
        assert main([path, "--log-level", "debug"]) == 0
        assert "1,1,0,1,false" in capsys.readouterr().out

    def test_unknown_log_level_flag(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([write_csv(tmp_path), "--log-level", "bogus"])
        assert excinfo.value.code == 2
        assert "invalid choice" in capsys.readouterr().err

    def test_unknown_log_level_in_environment(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("TX_ENGINE_LOG_LEVEL", "bogus")
        get_settings.cache_clear()

        assert main([write_csv(tmp_path, "deposit, 1, 1, 1.0")]) == 2
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "log_level" in captured.err
