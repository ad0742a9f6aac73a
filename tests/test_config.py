import os
from pathlib import Path

import pytest
import yaml

from kinport.config import ExportConfig, get_kinport_home, load_config
from kinport.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    names = ("KINPORT_SUBDOMAIN", "KINPORT_APP_ID", "KINPORT_API_TOKEN")
    for var in names:
        monkeypatch.delenv(var, raising=False)
    yield
    # load_dotenv writes os.environ directly
    for var in names:
        os.environ.pop(var, None)


def test_get_kinport_home_default(monkeypatch):
    monkeypatch.delenv("KINPORT_HOME", raising=False)
    assert get_kinport_home() == Path("~/.config/kinport").expanduser()


def test_get_kinport_home_env_var(monkeypatch, tmp_path):
    custom_home = tmp_path / "custom_home"
    monkeypatch.setenv("KINPORT_HOME", str(custom_home))
    assert get_kinport_home() == custom_home


def test_load_config_missing_file(monkeypatch, tmp_path):
    monkeypatch.setenv("KINPORT_HOME", str(tmp_path))
    with pytest.raises(ConfigError, match="kinport config.yaml not found"):
        load_config()


def test_load_config_empty_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("")
    with pytest.raises(ConfigError, match="empty"):
        load_config(path)


def test_load_config_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("subdomain: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(path)


def test_load_config_valid(monkeypatch, tmp_path):
    monkeypatch.setenv("KINPORT_HOME", str(tmp_path))
    (tmp_path / "config.yaml").write_text(yaml.dump({
        "subdomain": "acme",
        "app_id": 17,
        "api_token": "tok",
        "sheet_name": "orders",
        "batch_size": 200,
        "exclude_fields": ["$revision", "memo"],
        "unrelated": "ignored",
    }))

    cfg = load_config()
    assert isinstance(cfg, ExportConfig)
    assert cfg.subdomain == "acme"
    assert cfg.app_id == "17"
    assert cfg.sheet_name == "orders"
    assert cfg.batch_size == 200
    assert cfg.sleep_ms == 100
    assert cfg.exclude_fields == ["$revision", "memo"]
    cfg.validate()


def test_load_config_with_env_file(tmp_path):
    env_file = tmp_path / ".env.test"
    env_file.write_text("KINPORT_API_TOKEN=loaded_from_env\n")
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"subdomain": "acme", "app_id": "1", "env_file": str(env_file)}))

    cfg = load_config(path)
    assert os.environ.get("KINPORT_API_TOKEN") == "loaded_from_env"
    assert cfg.api_token == "loaded_from_env"


def test_env_overrides_file(monkeypatch, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"subdomain": "acme", "app_id": "1", "api_token": "file-token"}))
    monkeypatch.setenv("KINPORT_APP_ID", "99")

    cfg = load_config(path)
    assert cfg.app_id == "99"
    assert cfg.api_token == "file-token"


class TestValidate:

    def test_defaults(self):
        cfg = ExportConfig(subdomain="a", app_id="1", api_token="t")
        cfg.validate()
        assert cfg.sheet_name == "data"
        assert cfg.batch_size == 500
        assert cfg.sleep_ms == 100
        assert cfg.enable_styling is True
        assert cfg.exclude_fields == ["$revision"]

    def test_all_missing_keys_named(self):
        with pytest.raises(ConfigError) as exc_info:
            ExportConfig().validate()
        assert exc_info.value.missing == ["subdomain", "app_id", "api_token"]
        assert "subdomain, app_id, api_token" in str(exc_info.value)

    def test_blank_counts_as_missing(self):
        with pytest.raises(ConfigError) as exc_info:
            ExportConfig(subdomain="  ", app_id="1", api_token="t").validate()
        assert exc_info.value.missing == ["subdomain"]

    @pytest.mark.parametrize("batch_size", [0, 501])
    def test_batch_size_range(self, batch_size):
        with pytest.raises(ConfigError, match="batch_size"):
            ExportConfig(subdomain="a", app_id="1", api_token="t", batch_size=batch_size).validate()

    def test_negative_sleep(self):
        with pytest.raises(ConfigError, match="sleep_ms"):
            ExportConfig(subdomain="a", app_id="1", api_token="t", sleep_ms=-1).validate()

    def test_base_url_override(self):
        cfg = ExportConfig(subdomain="a", app_id="1", api_token="t", base_url="http://localhost:8080/")
        assert cfg.origin == "http://localhost:8080"

    def test_empty_updated_at_field(self):
        with pytest.raises(ConfigError, match="updated_at_field"):
            ExportConfig(subdomain="a", app_id="1", api_token="t", updated_at_field=" ").validate()

    def test_updated_at_field_default(self):
        assert ExportConfig().updated_at_field == "更新日時"

    def test_masked(self):
        data = ExportConfig(subdomain="a", app_id="1", api_token="abcdefgh").masked()
        assert data["api_token"] == "abcd****"
        assert data["origin"] == "https://a.cybozu.com"
