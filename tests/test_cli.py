import sqlite3

import pytest
from typer.testing import CliRunner

import main
from hv.config import load_config
from hv.database import create_db_engine
from hv.errors import InternalError
from hv.library import Library

from conftest import make_import_folder

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    path = tmp_path / "config.ini"
    monkeypatch.setattr("hv.config.DEFAULT_CONFIG_PATH", path)
    monkeypatch.setattr("main.DEFAULT_CONFIG_PATH", path)
    monkeypatch.setattr("main.setup_logging", lambda *args, **kwargs: None)
    return path


@pytest.fixture
def initialized(config_path, tmp_path):
    result = runner.invoke(main.app, ["init", "--database", str(tmp_path / "hv.db")])
    assert result.exit_code == 0, result.output
    return config_path


def test_commands_need_config(config_path):
    result = runner.invoke(main.app, ["register-user", "Ammie", "cats123"])
    assert result.exit_code == 1
    assert "hv init" in result.output


def test_init_writes_config(initialized, tmp_path):
    assert load_config(initialized).database_path == tmp_path / "hv.db"


def test_register_user(initialized, tmp_path):
    result = runner.invoke(main.app, ["register-user", "Ammie", "cats123"])
    assert result.exit_code == 0, result.output

    again = runner.invoke(main.app, ["register-user", "ammie", "cats123"])
    assert again.exit_code == 1
    assert "User already exists" in again.output

    library = Library(create_db_engine(tmp_path / "hv.db"))
    try:
        token = library.login_user("Ammie", "cats123")
        assert library.get_username("AMMIE", token) == "Ammie"
    finally:
        library.close()


def test_import_doujin_command(initialized, tmp_path):
    good = make_import_folder(tmp_path / "good", ["1.png", "2.png"], pages=2)
    bad = make_import_folder(tmp_path / "bad", ["1.png"], pages=2)

    result = runner.invoke(main.app, ["import-doujin", str(good)])
    assert result.exit_code == 0, result.output

    result = runner.invoke(main.app, ["import-doujin", str(bad)])
    assert result.exit_code == 1
    assert "failed to register doujin" in result.output
    assert "found 1 out of 2" in result.output


def test_import_doujins_command(initialized, tmp_path):
    root = tmp_path / "incoming"
    make_import_folder(root / "a", ["1.png"], pages=1)
    make_import_folder(root / "b", ["1.png", "3.png"], pages=2)

    result = runner.invoke(main.app, ["import-doujins", str(root)])

    assert result.exit_code == 1
    assert "1 imported, 1 failed" in result.output


def test_meta_format():
    result = runner.invoke(main.app, ["meta-format"])
    assert result.exit_code == 0
    assert '"favorite_counts": 69420' in result.output


def test_register_user_ignores_disable_registering(initialized, tmp_path):
    initialized.write_text(
        initialized.read_text().replace("disable_registering = false", "disable_registering = true")
    )
    assert load_config(initialized).disable_registering

    result = runner.invoke(main.app, ["register-user", "Ammie", "cats123"])
    assert result.exit_code == 0, result.output


def test_reset_requires_confirm(initialized):
    result = runner.invoke(main.app, ["reset"])
    assert result.exit_code == 1
    assert "--confirm" in result.output


def test_reset_recreates_empty_database(initialized, tmp_path):
    runner.invoke(main.app, ["register-user", "Ammie", "cats123"])
    make_import_folder(tmp_path / "good", ["1.png"], pages=1)
    runner.invoke(main.app, ["import-doujin", str(tmp_path / "good")])

    result = runner.invoke(main.app, ["reset", "--confirm"])
    assert result.exit_code == 0, result.output

    conn = sqlite3.connect(tmp_path / "hv.db")
    try:
        assert conn.execute("SELECT COUNT(*) FROM Users").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM Doujins").fetchone()[0] == 0
        assert conn.execute("SELECT schema_version FROM META").fetchone()[0] == "v1"
    finally:
        conn.close()


def _storage_failure(self, folder):
    raise InternalError()


def test_import_doujin_storage_failure(initialized, tmp_path, monkeypatch):
    folder = make_import_folder(tmp_path / "good", ["1.png"], pages=1)
    monkeypatch.setattr(Library, "import_doujin", _storage_failure)

    result = runner.invoke(main.app, ["import-doujin", str(folder)])

    assert result.exit_code == 1
    assert "[ERROR]" in result.output
    assert "Internal server error" in result.output
    assert not isinstance(result.exception, InternalError)


def test_import_doujins_storage_failure(initialized, tmp_path, monkeypatch):
    make_import_folder(tmp_path / "incoming" / "a", ["1.png"], pages=1)
    monkeypatch.setattr(Library, "import_doujin", _storage_failure)

    result = runner.invoke(main.app, ["import-doujins", str(tmp_path / "incoming")])

    assert result.exit_code == 1
    assert "aborted" in result.output
