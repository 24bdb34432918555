"""
Tests for Monitor Configuration.

============================================================
TEST COVERAGE
============================================================
1. Defaults
2. Validation
3. Environment loading
4. YAML loading
5. URL rendering and redaction
============================================================
"""

import pytest

from connection_health import (
    ClientConfigurationError,
    ConfigurationError,
    DatabaseSettings,
    MonitorConfig,
    ProbeSettings,
)


# ============================================================
# DEFAULTS
# ============================================================

class TestDefaults:
    """Test out-of-the-box values."""

    def test_database_defaults(self):
        """Test a local TiDB-style endpoint."""
        db = DatabaseSettings()
        assert db.driver == "mysql+aiomysql"
        assert db.host == "127.0.0.1"
        assert db.port == 4000
        assert db.user == "root"
        assert db.database == "test"

    def test_probe_defaults(self):
        """Test default fan-out and timing."""
        probes = ProbeSettings()
        assert probes.long_conns == 100
        assert probes.short_concurrency == 1
        assert probes.short_interval == 1.0
        assert probes.slow_threshold == 0.1
        assert probes.exercise_transaction is False
        assert probes.sentinel_enabled


# ============================================================
# VALIDATION
# ============================================================

class TestValidation:
    """Test invalid settings are rejected at construction."""

    @pytest.mark.parametrize("kwargs", [
        {"long_conns": -1},
        {"short_concurrency": -1},
        {"long_interval": 0},
        {"short_interval": -1.0},
        {"slow_threshold": 0},
        {"operation_timeout": 0},
        {"sentinel_interval": -0.1},
        {"sentinel_max_in_flight": 0},
    ])
    def test_invalid_probe_settings(self, kwargs):
        """Test probe settings validation."""
        with pytest.raises(ConfigurationError):
            ProbeSettings(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"port": 0},
        {"port": 70000},
        {"connect_timeout": 0},
    ])
    def test_invalid_database_settings(self, kwargs):
        """Test database settings validation."""
        with pytest.raises(ConfigurationError):
            DatabaseSettings(**kwargs)

    def test_error_details(self):
        """Test the offending field is reported."""
        with pytest.raises(ConfigurationError) as exc_info:
            ProbeSettings(slow_threshold=-1)

        assert exc_info.value.field_name == "slow_threshold"
        assert exc_info.value.to_dict()["details"] == {"field": "slow_threshold", "value": "-1"}

    def test_zero_sentinel_interval_disables(self):
        """Test 0 is accepted and disables the sentinel."""
        assert not ProbeSettings(sentinel_interval=0).sentinel_enabled


# ============================================================
# ENVIRONMENT LOADING
# ============================================================

class TestFromEnv:
    """Test CONNMON_* variables."""

    def test_values_parsed(self):
        """Test typed parsing of each section."""
        config = MonitorConfig.from_env({
            "CONNMON_HOST": "10.0.0.5",
            "CONNMON_PORT": "3306",
            "CONNMON_PASSWORD": "secret",
            "CONNMON_LONG_CONNS": "10",
            "CONNMON_SLOW_THRESHOLD": "0.25",
            "CONNMON_EXERCISE_TRANSACTION": "yes",
        })

        assert config.database.host == "10.0.0.5"
        assert config.database.port == 3306
        assert config.database.password == "secret"
        assert config.probes.long_conns == 10
        assert config.probes.slow_threshold == 0.25
        assert config.probes.exercise_transaction is True

    def test_empty_environment_gives_defaults(self):
        """Test unset and empty variables are ignored."""
        config = MonitorConfig.from_env({"CONNMON_HOST": ""})
        assert config.database.host == "127.0.0.1"
        assert config.probes.long_conns == 100

    def test_unparseable_value(self):
        """Test a non-numeric number is a configuration error."""
        with pytest.raises(ConfigurationError, match="CONNMON_PORT"):
            MonitorConfig.from_env({"CONNMON_PORT": "four thousand"})

    def test_reads_process_environment(self, monkeypatch):
        """Test os.environ is used by default."""
        monkeypatch.setenv("CONNMON_DATABASE", "health")
        assert MonitorConfig.from_env().database.database == "health"


# ============================================================
# YAML LOADING
# ============================================================

class TestFromYaml:
    """Test YAML configuration files."""

    def test_loads_sections(self, tmp_path):
        """Test both sections are applied."""
        path = tmp_path / "monitor.yaml"
        path.write_text(
            "database:\n"
            "  host: db.internal\n"
            "  port: 4001\n"
            "probes:\n"
            "  long_conns: 5\n"
            "  sentinel_interval: 0\n"
        )

        config = MonitorConfig.from_yaml(path)

        assert config.database.host == "db.internal"
        assert config.database.port == 4001
        assert config.probes.long_conns == 5
        assert not config.probes.sentinel_enabled

    def test_empty_file(self, tmp_path):
        """Test an empty file gives defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert MonitorConfig.from_yaml(path).probes.long_conns == 100

    def test_missing_file(self, tmp_path):
        """Test an unreadable file is a configuration error."""
        with pytest.raises(ConfigurationError):
            MonitorConfig.from_yaml(tmp_path / "missing.yaml")

    def test_unknown_section(self, tmp_path):
        """Test typos in section names are rejected."""
        path = tmp_path / "typo.yaml"
        path.write_text("probe:\n  long_conns: 5\n")

        with pytest.raises(ConfigurationError, match="unknown config sections: probe"):
            MonitorConfig.from_yaml(path)

    def test_unknown_key(self, tmp_path):
        """Test typos in field names are rejected."""
        path = tmp_path / "typo.yaml"
        path.write_text("probes:\n  long_con: 5\n")

        with pytest.raises(ConfigurationError, match="invalid 'probes' section"):
            MonitorConfig.from_yaml(path)

    def test_not_a_mapping(self, tmp_path):
        """Test a top-level list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            MonitorConfig.from_yaml(path)


# ============================================================
# URL RENDERING
# ============================================================

class TestUrl:
    """Test SQLAlchemy URL rendering."""

    def test_url_from_fields(self):
        """Test the URL is assembled from the individual fields."""
        url = DatabaseSettings(host="db", port=4001, user="probe", password="pw").render_url()

        assert url.drivername == "mysql+aiomysql"
        assert url.host == "db"
        assert url.port == 4001
        assert url.username == "probe"
        assert url.password == "pw"
        assert url.database == "test"

    def test_explicit_url_wins(self):
        """Test url overrides the individual fields."""
        url = DatabaseSettings(url="sqlite+aiosqlite:///health.db", host="ignored").render_url()

        assert url.drivername == "sqlite+aiosqlite"
        assert url.database == "health.db"

    def test_malformed_url(self):
        """Test an unparseable url is a client configuration error."""
        with pytest.raises(ClientConfigurationError):
            DatabaseSettings(url="not a url").render_url()

    def test_non_numeric_port(self):
        """Test a url with a non-numeric port is a client configuration error."""
        settings = DatabaseSettings(url="mysql+aiomysql://root:pw@db:notaport/test")

        with pytest.raises(ClientConfigurationError):
            settings.render_url()
        assert settings.display_target() == "<invalid url>"

    def test_password_never_displayed(self):
        """Test the display target and config dump hide the password."""
        config = MonitorConfig(database=DatabaseSettings(password="hunter2"))

        assert "hunter2" not in config.database.display_target()
        assert "hunter2" not in str(config.to_dict())
        assert "127.0.0.1:4000/test" in config.database.display_target()
