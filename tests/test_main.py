import json

import pytest
import structlog

from storage_loader.main import main


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()


def write_targets(tmp_path, table="events"):
    path = tmp_path / "targets.yml"
    path.write_text(
        "targets:\n"
        "  - name: local\n"
        "    type: postgres\n"
        "    host: localhost\n"
        "    database: snowplow\n"
        "    username: loader\n"
        "    password: s3cret\n"
        f"    table: \"{table}\"\n"
    )
    return path


def set_env(monkeypatch, events_dir, targets_path):
    monkeypatch.setenv("EVENTS_DIR", str(events_dir))
    monkeypatch.setenv("TARGETS_PATH", str(targets_path))
    monkeypatch.delenv("SKIP_STEPS", raising=False)
    monkeypatch.delenv("INCLUDE_STEPS", raising=False)


def test_main_loads_each_target(monkeypatch, tmp_path, database, events_dir):
    set_env(monkeypatch, events_dir, write_targets(tmp_path))

    assert main(["--include", "vacuum"]) == 0

    assert database.submitted[-1] == "VACUUM ANALYZE events;"


def test_main_skip_flag(monkeypatch, tmp_path, database, events_dir):
    set_env(monkeypatch, events_dir, write_targets(tmp_path))

    assert main(["--skip", "analyze"]) == 0

    assert database.submitted[-1] == "COMMIT;"


def test_main_returns_1_on_failure(monkeypatch, tmp_path, database, events_dir, constraint_violation):
    set_env(monkeypatch, events_dir, write_targets(tmp_path))
    database.fail_on("ANALYZE events;", constraint_violation)

    assert main([]) == 1


def test_main_returns_1_on_invalid_table(monkeypatch, tmp_path, database, events_dir):
    set_env(monkeypatch, events_dir, write_targets(tmp_path, table="bad table"))

    assert main([]) == 1
    assert database.connections == []


def test_main_without_targets(monkeypatch, tmp_path, events_dir):
    path = tmp_path / "targets.yml"
    path.write_text("targets: []\n")
    set_env(monkeypatch, events_dir, path)

    assert main([]) == 0


def test_main_configures_json_logging(monkeypatch, tmp_path, events_dir, capsys):
    structlog.reset_defaults()
    path = tmp_path / "targets.yml"
    path.write_text("targets: []\n")
    set_env(monkeypatch, events_dir, path)

    assert main([]) == 0

    processors = structlog.get_config()["processors"]
    assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    entry = json.loads(lines[-1])
    assert entry["event"] == "no_targets_configured"
    assert entry["level"] == "warning"
    assert "timestamp" in entry


def test_main_steps_from_env_and_flags_are_normalised(monkeypatch, tmp_path, database, events_dir):
    set_env(monkeypatch, events_dir, write_targets(tmp_path))
    monkeypatch.setenv("SKIP_STEPS", " Analyze ")

    assert main(["--include", "VACUUM"]) == 0

    assert database.submitted[-1] == "VACUUM events;"
