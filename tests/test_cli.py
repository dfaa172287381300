import json

import pytest

from pomigrate.cli import build_parser, load_config, main
from pomigrate.models.migration import ImportConfig


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ImportConfig.ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def test_no_command_prints_help(capsys):
    main([])

    assert "usage: pomigrate" in capsys.readouterr().out


def test_config_precedence(monkeypatch, tmp_path):
    monkeypatch.setenv("MAX_RETRIES", "2")
    monkeypatch.setenv("OUTPUT_DIR", "/tmp/from-env")
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"max_retries": 4, "hours_per_day": 7.5}))
    args = build_parser().parse_args([
        "import", "--source", "p.json", "--config", str(config_file), "--output-dir", "/tmp/flag",
    ])

    config = load_config(args)

    assert config.max_retries == 4
    assert config.hours_per_day == 7.5
    assert config.output_dir == "/tmp/flag"
    assert not config.dry_run


def test_bad_config_file_exits(tmp_path, capsys):
    config_file = tmp_path / "config.json"
    config_file.write_text("{broken")

    with pytest.raises(SystemExit) as exc:
        main(["import", "--source", "p.json", "--config", str(config_file)])

    assert exc.value.code == 1
    assert "Configuration error" in capsys.readouterr().err


def test_dry_run_import(export_file, tmp_path, capsys):
    main(["import", "--source", str(export_file), "--dry-run", "--output-dir", str(tmp_path / "out")])

    out = capsys.readouterr().out
    assert "IMPORT COMPLETE" in out
    assert "Tasks imported: 4" in out
    assert "Dry run" in out
    assert list((tmp_path / "out" / "logs").glob("import_report_*.json"))


def test_live_import_without_token_aborts(export_file, capsys):
    with pytest.raises(SystemExit) as exc:
        main(["import", "--source", str(export_file)])

    assert exc.value.code == 1
    assert "Import aborted" in capsys.readouterr().err


def test_failed_import_exits_non_zero(export_data, tmp_path, capsys):
    del export_data["project"]["Name"]
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(export_data))

    with pytest.raises(SystemExit) as exc:
        main(["import", "--source", str(path), "--dry-run"])

    assert exc.value.code == 1
    assert "IMPORT FAILED" in capsys.readouterr().out


def test_validate_ready(export_file, capsys, monkeypatch):
    monkeypatch.setenv("DRY_RUN", "true")

    main(["validate", "--source", str(export_file)])

    assert "is ready to import" in capsys.readouterr().out


def test_validate_reports_problems(capsys):
    with pytest.raises(SystemExit):
        main(["validate", "--source", "2f7a8c1e-4b3d-4e5f-9a0b-1c2d3e4f5a6b"])

    out = capsys.readouterr().out
    assert "PROJECT_ONLINE_URL is not set" in out
    assert "SMARTSHEET_API_TOKEN is not set" in out
