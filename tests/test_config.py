"""Tests for configuration loading."""

from pathlib import Path

import pytest

from dlcatalog.config import Config, load_config
from dlcatalog.errors import ConfigError


class TestLoadConfig:
    def test_defaults_and_overrides(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("storage_url: u1@box\ndomain: download.example.org\nssh_port: 2222\n")

        config = load_config(path, environ={})

        assert config.storage_url == "u1@box"
        assert config.ssh_port == 2222
        assert config.remote_root == "/home"
        assert config.extension == ".versatiles"
        assert config.base_url == "https://download.example.org/"

    def test_environment_fallback(self):
        config = load_config(None, environ={"STORAGE_URL": "u2@box", "DOMAIN": "dl.example.org"})

        assert config.storage_url == "u2@box"
        assert config.domain == "dl.example.org"

    def test_file_wins_over_environment(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("storage_url: from-file\n")

        assert load_config(path, environ={"STORAGE_URL": "from-env"}).storage_url == "from-file"

    def test_rejects_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigError, match="mapping"):
            load_config(path, environ={})

    def test_rejects_bad_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("ssh_port: twenty-three\n")

        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path, environ={}) == Config()


class TestValidate:
    def test_missing_storage_url(self):
        with pytest.raises(ConfigError, match="storage_url"):
            Config(domain="dl.example.org").validate()

    def test_missing_domain(self):
        with pytest.raises(ConfigError, match="domain"):
            Config(storage_url="u@box").validate()

    def test_complete(self):
        Config(storage_url="u@box", domain="dl.example.org").validate()

    def test_folders(self):
        config = Config(volume_folder="/srv/vol")

        assert config.tiles_folder == Path("/srv/vol/tiles")
        assert config.content_folder == Path("/srv/vol/content")
        assert config.data_folder == Path("/srv/vol/data")
        assert config.hash_cache_folder == Path("/srv/vol/hash_cache")
