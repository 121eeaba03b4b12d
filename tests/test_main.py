"""Tests for main module."""

import logging
import sqlite3

import pytest

from doctree.config import Config
from doctree.main import build_parser, create_server, main
from doctree.schema import LATEST_VERSION


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.setenv("DOCTREE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("DOCTREE_DB", str(tmp_path / "data" / "test.db"))
    for name in ("DOCTREE_PORT", "DOCTREE_AUTH_TOKEN", "DOCTREE_READ_ONLY", "DOCTREE_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "acme"
    (root / "pkg").mkdir(parents=True)
    (root / "pkg" / "__init__.py").write_text('def run(args):\n    """Run the thing."""\n')
    return root


def test_create_server(env, caplog):
    """Test create_server initializes all components."""
    config = Config.from_env()

    with caplog.at_level(logging.INFO):
        mcp = create_server(config)

    assert mcp is not None
    assert mcp.name == "doctree"
    assert config.index_db.exists()

    log_messages = [record.message for record in caplog.records]
    assert any("Index store is empty" in msg for msg in log_messages)
    assert any("Registering tools" in msg for msg in log_messages)
    assert any("Server configured successfully" in msg for msg in log_messages)


@pytest.mark.asyncio
async def test_create_server_registers_tools(env):
    mcp = create_server(Config.from_env())
    tools = await mcp.get_tools()
    assert {"search", "list_indexes", "index_directory"} <= set(tools)


class TestCli:
    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_index_search_list(self, env, project, capsys):
        assert main(["index", str(project)]) == 0
        out = capsys.readouterr().out
        assert "acme: python: 1 files" in out

        assert main(["search", "run"]) == 0
        out = capsys.readouterr().out
        assert "pkg.run" in out
        assert "def run(args)" in out

        assert main(["list"]) == 0
        out = capsys.readouterr().out
        assert "acme  python  1 files" in out

    def test_index_with_project_name(self, env, project, capsys):
        assert main(["index", str(project), "--project", "renamed"]) == 0
        assert "renamed: python" in capsys.readouterr().out

    def test_search_unknown_project(self, env, project, capsys):
        main(["index", str(project)])
        capsys.readouterr()
        assert main(["search", "run", "--project", "other"]) == 0
        assert "No results." in capsys.readouterr().out

    def test_empty_store(self, env, capsys):
        assert main(["list"]) == 0
        assert "Nothing indexed yet." in capsys.readouterr().out
        assert not (env / "data").exists()

    def test_search_before_indexing_creates_nothing(self, env, capsys):
        assert main(["search", "run"]) == 0
        assert "No results." in capsys.readouterr().out
        assert not (env / "data" / "test.db").exists()
        assert not (env / "data").exists()

    def test_missing_directory_fails(self, env, caplog):
        with caplog.at_level(logging.ERROR):
            assert main(["index", str(env / "missing")]) == 1
        assert any("Not a directory" in r.message for r in caplog.records)

    def test_invalid_config_fails(self, env, monkeypatch):
        monkeypatch.setenv("DOCTREE_PORT", "not_a_number")
        assert main(["list"]) == 1

    def test_incompatible_schema_fails(self, env, project, caplog):
        assert main(["index", str(project)]) == 0
        conn = sqlite3.connect(str(env / "data" / "test.db"))
        conn.execute("UPDATE indexes SET schema_version = ?", (LATEST_VERSION + 1,))
        conn.commit()
        conn.close()

        with caplog.at_level(logging.ERROR):
            assert main(["search", "run"]) == 1
        assert any("Upgrade doctree" in r.message for r in caplog.records)
