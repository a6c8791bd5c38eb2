from pathlib import Path

import pytest

from hv.config import DEFAULT_MAX_TOKENS_PER_USER, load_config, write_default_config


def test_write_then_load_default_config(tmp_path):
    config_path = write_default_config(tmp_path / "data" / "hv.db", tmp_path / "config.ini")

    config = load_config(config_path)

    assert config.database_path == tmp_path / "data" / "hv.db"
    assert config.max_tokens_per_user == DEFAULT_MAX_TOKENS_PER_USER
    assert config.logging.level == "INFO"


def test_relative_database_path_resolves_beside_config(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[database]\npath = library/hv.db\n")

    config = load_config(config_path)

    assert config.database_path == tmp_path / "library" / "hv.db"


def test_missing_sections_use_defaults(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("")

    config = load_config(config_path)

    assert config.database_path == tmp_path / "hv.db"
    assert config.max_tokens_per_user == DEFAULT_MAX_TOKENS_PER_USER


def test_custom_values(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[auth]\nmax_tokens_per_user = 5\n\n[logging]\nlevel = debug\n")

    config = load_config(config_path)

    assert config.max_tokens_per_user == 5
    assert config.logging.level == "DEBUG"


def test_token_cap_below_one_falls_back(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[auth]\nmax_tokens_per_user = 0\n")

    assert load_config(config_path).max_tokens_per_user == DEFAULT_MAX_TOKENS_PER_USER


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.ini")


def test_database_path_expands_user(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    config_path = tmp_path / "config.ini"
    config_path.write_text("[database]\npath = ~/hv.db\n")

    assert load_config(config_path).database_path == Path(tmp_path) / "hv.db"


def test_disable_registering_flag(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[auth]\ndisable_registering = true\n")

    assert load_config(config_path).disable_registering is True


def test_registering_enabled_by_default(tmp_path):
    config_path = write_default_config(tmp_path / "hv.db", tmp_path / "config.ini")

    assert load_config(config_path).disable_registering is False


def test_log_file_setting(tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[logging]\nfile = logs/hv.log\n")

    assert load_config(config_path).logging.file == tmp_path / "logs" / "hv.log"
    assert load_config(write_default_config(tmp_path / "hv.db", config_path)).logging.file is None
