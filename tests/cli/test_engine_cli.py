import json

import pytest
from typer.testing import CliRunner

import programme_engine.cli.app as cli_app
from programme_engine.cli.app import app
from programme_engine.domain.entities import EnrollmentStatus


runner = CliRunner()


@pytest.fixture
def cli_engine(engine, monkeypatch):
    monkeypatch.setattr(cli_app, "_build_engine", lambda memory=False, programmes=None: engine)
    return engine


def test_enroll_and_complete(cli_engine):
    result = runner.invoke(app, ["enroll", "u1", "renewal-14"])
    assert result.exit_code == 0, result.stdout
    assert "round 1" in result.stdout

    result = runner.invoke(app, ["complete", "u1", "renewal-14", "1", "--reflection", '{"mood": "calm"}'])
    assert result.exit_code == 0, result.stdout
    assert "1/14 days, 7%" in result.stdout
    assert cli_engine.get_day_completion("u1:renewal-14", 1).reflection_response == {"mood": "calm"}


def test_locked_day_exits_with_reason(cli_engine):
    runner.invoke(app, ["enroll", "u1", "renewal-14"])

    result = runner.invoke(app, ["complete", "u1", "renewal-14", "5"])

    assert result.exit_code == 1
    assert "day_locked" in result.stdout
    assert not cli_engine.is_day_completed("u1:renewal-14", 5)


def test_pause_resume_and_invalid_transition(cli_engine):
    runner.invoke(app, ["enroll", "u1", "renewal-14"])

    assert runner.invoke(app, ["pause", "u1", "renewal-14"]).exit_code == 0
    assert cli_engine.get_enrollment("u1:renewal-14").status is EnrollmentStatus.PAUSED

    again = runner.invoke(app, ["pause", "u1", "renewal-14"])
    assert again.exit_code == 1
    assert "invalid_transition" in again.stdout

    assert runner.invoke(app, ["resume", "u1", "renewal-14"]).exit_code == 0
    assert cli_engine.get_enrollment("u1:renewal-14").status is EnrollmentStatus.ACTIVE


def test_change_fasting(cli_engine):
    runner.invoke(app, ["enroll", "u1", "lent-21", "--fasting", "no_food"])

    result = runner.invoke(app, ["change-fasting", "u1", "lent-21", "time_window", "--window", "12:00-20:00"])
    assert result.exit_code == 0, result.stdout
    assert "no_food -> time_window 12:00-20:00" in result.stdout

    same = runner.invoke(app, ["change-fasting", "u1", "lent-21", "time_window", "--window", "12:00-20:00"])
    assert "unchanged" in same.stdout


def test_status_renders_progress_table(cli_engine, clock):
    runner.invoke(app, ["enroll", "u1", "renewal-14"])
    clock.advance(days=2)
    runner.invoke(app, ["complete", "u1", "renewal-14", "1"])

    result = runner.invoke(app, ["status", "u1", "renewal-14"])

    assert result.exit_code == 0, result.stdout
    assert "Next day" in result.stdout
    assert "3/14" in result.stdout

    listing = runner.invoke(app, ["status", "u1"])
    assert "renewal-14" in listing.stdout
    assert "active" in listing.stdout


def test_invalid_start_date(cli_engine):
    result = runner.invoke(app, ["enroll", "u1", "renewal-14", "--start-date", "01/02/2024"])
    assert result.exit_code != 0


def test_memory_mode_with_programme_file(tmp_path):
    path = tmp_path / "programmes.json"
    path.write_text(
        json.dumps({"programmes": [{"id": "renewal-14", "title": "Renewal", "duration_days": 14}]}),
        encoding="utf-8",
    )

    result = runner.invoke(
        app,
        ["--memory", "--programmes", str(path), "enroll", "u1", "renewal-14", "--start-date", "2024-01-01"],
    )

    assert result.exit_code == 0, result.stdout
    assert "starting 2024-01-01" in result.stdout


def test_init_db_in_memory_mode_is_a_no_op():
    result = runner.invoke(app, ["--memory", "init-db"])
    assert result.exit_code == 0
    assert "needs no schema" in result.stdout


def test_init_db_reports_store_failures(monkeypatch):
    class BrokenStore:
        def ensure_schema(self):
            raise RuntimeError("connection refused")

    monkeypatch.setattr(cli_app, "_build_store", lambda: BrokenStore())

    result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 1
    assert "connection refused" in result.stdout
