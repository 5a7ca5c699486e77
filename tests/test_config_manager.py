"""
Unit tests for configuration loading.
"""
import pytest

from coach_feedback.config.config_manager import ConfigManager, ConfigurationError


CONFIG_VARS = [
    "FEEDBACK_API_URL", "FEEDBACK_API_TOKEN", "REQUEST_TIMEOUT", "MAX_FILE_SIZE_MB",
    "LOG_LEVEL", "SECRET_KEY", "ORG_NAME", "ORG_ADDRESS", "ORG_PHONE", "ORG_EMAIL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv first so values loaded from .env files are undone after the test too
    for name in CONFIG_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # no stray .env in the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env):
    config = ConfigManager()

    assert config.get_api_url() == "http://localhost:5000/api"
    assert config.get_api_token() is None
    assert config.get_request_timeout() == 30
    assert config.get_max_file_size_mb() == 10
    assert config.get_log_level() == "INFO"
    letterhead = config.get_letterhead()
    assert letterhead.name == "Young Bengal Co-Operative Labour Contract Society Ltd."
    assert letterhead.contact_line == "Phone: 033-6535 8154 | E-mail: ybcolcs@yahoo.in"


def test_env_overrides(clean_env):
    clean_env.setenv("FEEDBACK_API_URL", "https://feedback.example.org/api/")
    clean_env.setenv("REQUEST_TIMEOUT", "5")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("ORG_NAME", "Eastern Rail Services")

    config = ConfigManager()

    assert config.get_api_url() == "https://feedback.example.org/api"
    assert config.get_request_timeout() == 5
    assert config.get_log_level() == "DEBUG"
    assert config.get_letterhead().name == "Eastern Rail Services"


def test_env_file_is_loaded(clean_env, tmp_path):
    env_file = tmp_path / "custom.env"
    env_file.write_text("MAX_FILE_SIZE_MB=25\n")
    assert ConfigManager(str(env_file)).get_max_file_size_mb() == 25


def test_non_numeric_setting_raises(clean_env):
    clean_env.setenv("REQUEST_TIMEOUT", "soon")
    with pytest.raises(ConfigurationError, match="REQUEST_TIMEOUT"):
        ConfigManager()


def test_validate_api_url(clean_env):
    clean_env.setenv("FEEDBACK_API_URL", "ftp://feedback.example.org")
    assert ConfigManager().validate_api_url() is False


def test_secrets_are_masked(clean_env):
    clean_env.setenv("FEEDBACK_API_TOKEN", "abcd1234efgh5678")
    clean_env.setenv("SECRET_KEY", "short")

    config = ConfigManager().get_all_config()

    assert config["FEEDBACK_API_TOKEN"] == "abcd...5678"
    assert config["SECRET_KEY"] == "***"
