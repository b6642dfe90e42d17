"""Tests for configuration loading."""

import pytest
from pathlib import Path

import cortex.config
from cortex.config import load_config

_ENV_KEYS = [
    "CORTEX_INDEX_FILE",
    "CORTEX_MEMORY_EXTENSION",
    "CORTEX_CATEGORY_MODE",
    "CORTEX_LOCAL_REGISTRY",
    "CORTEX_GLOBAL_REGISTRY",
    "CORTEX_STRICT_LOCAL",
    "CORTEX_DEFAULT_STORE",
    "CORTEX_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cortex.config, "_CONFIG_DIR", tmp_path / "home-config")
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self, tmp_path: Path):
        config = load_config()
        assert config.store.index_file_name == "index.yaml"
        assert config.store.memory_extension == ".md"
        assert config.store.auto_create_categories
        assert config.registry.local_path == tmp_path / ".cortex" / "stores.yaml"
        assert config.registry.strict_local is False
        assert config.default_store == "default"
        assert config.log_level == "INFO"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CORTEX_CATEGORY_MODE", "strict")
        monkeypatch.setenv("CORTEX_STRICT_LOCAL", "yes")
        monkeypatch.setenv("CORTEX_GLOBAL_REGISTRY", "~/elsewhere/stores.yaml")

        config = load_config()
        assert not config.store.auto_create_categories
        assert config.registry.strict_local is True
        assert config.registry.global_path == Path.home() / "elsewhere" / "stores.yaml"

    def test_toml_file(self, tmp_path: Path):
        toml_path = tmp_path / "custom.toml"
        toml_path.write_text("""
default_store = "work"
log_level = "DEBUG"

[store]
index_file_name = "_index.yaml"
category_mode = "strict"

[registry]
strict_local = true
""")
        config = load_config(toml_path)
        assert config.default_store == "work"
        assert config.log_level == "DEBUG"
        assert config.store.index_file_name == "_index.yaml"
        assert config.store.category_mode == "strict"
        assert config.registry.strict_local is True

    def test_discovers_cwd_toml(self, tmp_path: Path):
        (tmp_path / "cortex.toml").write_text('default_store = "here"\n')
        assert load_config().default_store == "here"

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("CORTEX_DEFAULT_STORE", "from-env")

        toml_path = tmp_path / "cortex.toml"
        toml_path.write_text('default_store = "from-toml"\n')
        config = load_config(toml_path)
        assert config.default_store == "from-env"  # env wins

    def test_invalid_category_mode(self, monkeypatch):
        monkeypatch.setenv("CORTEX_CATEGORY_MODE", "loose")
        with pytest.raises(ValueError):
            load_config()
