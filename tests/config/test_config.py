import pytest

from config.config import ReconciliationConfig
from models.errors import InvalidArgumentError


def test_reconciliation_config_defaults():
    """Test ReconciliationConfig initializes with correct default values."""
    config = ReconciliationConfig()
    assert config.ledger_write_timeout_seconds == 5.0
    assert config.persistence_timeout_seconds == 5.0
    assert config.rule_action_max_attempts == 2
    assert config.unassigned_location == "Unassigned"
    assert config.default_location_color == "#CCCCCC"
    assert config.location_placeholder == "N/A"
    assert config.default_discrepancy_reason == "Cycle Count Adjustment"
    assert config.redis_url == ""


def test_reconciliation_config_custom():
    """Test ReconciliationConfig initialization with custom values."""
    config = ReconciliationConfig(rule_action_max_attempts=5, default_category="Misc")
    assert config.rule_action_max_attempts == 5
    assert config.default_category == "Misc"
    # Check a default value is still correct
    assert config.dispatch_queue_size == 1000


def test_from_env_reads_prefixed_variables(monkeypatch, tmp_path):
    monkeypatch.setenv("RECON_LEDGER_WRITE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("RECON_RULE_ACTION_MAX_ATTEMPTS", "4")
    monkeypatch.setenv("RECON_LOG_LEVEL", "DEBUG")

    config = ReconciliationConfig.from_env(dotenv_path=tmp_path / "missing.env")

    assert config.ledger_write_timeout_seconds == 2.5
    assert config.rule_action_max_attempts == 4
    assert config.log_level == "DEBUG"


def test_from_env_loads_dotenv_without_overriding_environment(monkeypatch, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("RECON_DEFAULT_CATEGORY=FromFile\nRECON_UNASSIGNED_LOCATION=FromFile\n")
    monkeypatch.setenv("RECON_UNASSIGNED_LOCATION", "FromEnv")
    # Registered so the value loaded from the file is removed again after the test
    monkeypatch.setenv("RECON_DEFAULT_CATEGORY", "")
    monkeypatch.delenv("RECON_DEFAULT_CATEGORY")

    config = ReconciliationConfig.from_env(dotenv_path=dotenv)

    assert config.default_category == "FromFile"
    assert config.unassigned_location == "FromEnv"


def test_from_env_rejects_malformed_numbers(monkeypatch, tmp_path):
    monkeypatch.setenv("RECON_DISPATCH_QUEUE_SIZE", "lots")

    with pytest.raises(InvalidArgumentError, match="RECON_DISPATCH_QUEUE_SIZE"):
        ReconciliationConfig.from_env(dotenv_path=tmp_path / "missing.env")
