import pytest

from pomigrate.exceptions import ConfigurationError
from pomigrate.models.migration import ImportConfig


def test_defaults():
    config = ImportConfig.from_env({})

    assert config.smartsheet_base_url == "https://api.smartsheet.com/2.0"
    assert config.max_retries == 5
    assert config.max_indent == 15
    assert config.hours_per_day == 8.0
    assert not config.dry_run


def test_reads_environment():
    config = ImportConfig.from_env({
        "SMARTSHEET_API_TOKEN": "abc",
        "PMO_STANDARDS_WORKSPACE_ID": "1234",
        "RATE_LIMIT_PER_MINUTE": "120",
        "DRY_RUN": "true",
        "LOG_LEVEL": "debug",
    })

    assert config.smartsheet_api_token == "abc"
    assert config.pmo_standards_workspace_id == 1234
    assert config.rate_limit_per_minute == 120
    assert config.dry_run
    assert config.log_level == "DEBUG"


def test_overrides_beat_environment():
    config = ImportConfig.from_env(
        {"OUTPUT_DIR": "/tmp/env", "MAX_RETRIES": "2"},
        overrides={"output_dir": "/tmp/flag", "max_retries": None},
    )

    assert config.output_dir == "/tmp/flag"
    assert config.max_retries == 2


def test_blank_variables_ignored():
    assert ImportConfig.from_env({"TEMPLATE_WORKSPACE_ID": ""}).template_workspace_id is None


@pytest.mark.parametrize("environ", [
    {"PMO_STANDARDS_WORKSPACE_ID": "standards"},
    {"HOURS_PER_DAY": "eight"},
    {"MAX_RETRIES": "0"},
    {"HOURS_PER_DAY": "-1"},
])
def test_invalid_values(environ):
    with pytest.raises(ConfigurationError):
        ImportConfig.from_env(environ)


def test_validate_lists_every_problem():
    problems = ImportConfig(project_online_url="http://pwa").validate()

    assert problems == [
        "SMARTSHEET_API_TOKEN is not set",
        "PROJECT_ONLINE_URL must start with https://",
        "PROJECT_ONLINE_ACCESS_TOKEN is not set",
    ]
    assert ImportConfig(smartsheet_api_token="x").validate(require_source=False) == []


def test_to_dict_omits_secrets():
    data = ImportConfig(smartsheet_api_token="secret", project_online_access_token="secret").to_dict()

    assert "secret" not in data.values()
    assert "smartsheet_api_token" not in data
