"""Tests for sparklib CLI commands."""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from sparklib.cli import EXIT_BAD_USAGE, EXIT_FORMAT_ERROR, EXIT_NOT_FOUND, app
from sparklib.models import Library, LibraryMetadata, MemoryLibraryFile


class TestCLI:
    """Test CLI commands."""

    @pytest.fixture
    def runner(self):
        """CLI runner fixture."""
        return CliRunner()

    @pytest.fixture
    def temp_project(self):
        """Create a temporary project with one library."""
        with tempfile.TemporaryDirectory() as temp_dir:
            project_path = Path(temp_dir)

            config_content = """
[repository]
root_path = "libraries"

[logging]
level = "WARNING"
"""
            (project_path / "sparklib.toml").write_text(config_content)

            library_dir = project_path / "libraries" / "mylib"
            library_dir.mkdir(parents=True)
            (library_dir / "library.properties").write_text(
                "name: mylib\nversion: 1.0.0\nsentence: My library"
            )
            (library_dir / "mylib.cpp").write_text('#include "mylib.h"\n')

            yield project_path

    def test_init_command(self, runner, tmp_path):
        result = runner.invoke(app, ["init", "--path", str(tmp_path)])

        assert result.exit_code == 0
        assert "sparklib initialized" in result.output
        assert (tmp_path / "sparklib.toml").exists()
        assert (tmp_path / "libraries").is_dir()

    def test_init_existing_force(self, runner, temp_project):
        result = runner.invoke(app, ["init", "--path", str(temp_project)])
        assert result.exit_code == EXIT_BAD_USAGE
        assert "already initialized" in result.output

        result = runner.invoke(app, ["init", "--path", str(temp_project), "--force"])
        assert result.exit_code == 0

    def test_missing_project(self, runner, tmp_path):
        result = runner.invoke(app, ["list", "--path", str(tmp_path)])

        assert result.exit_code == EXIT_BAD_USAGE
        assert "project not found" in result.output

    def test_invalid_config(self, runner, tmp_path):
        (tmp_path / "sparklib.toml").write_text("[repository\n")

        result = runner.invoke(app, ["list", "--path", str(tmp_path)])

        assert result.exit_code == EXIT_BAD_USAGE

    def test_unknown_logging_level(self, runner, tmp_path):
        (tmp_path / "sparklib.toml").write_text('[logging]\nlevel = "LOUD"\n')

        result = runner.invoke(app, ["list", "--path", str(tmp_path)])

        assert result.exit_code == EXIT_BAD_USAGE
        assert "unknown logging level LOUD" in result.output
        assert "Configuration error" in result.output

    def test_list_command(self, runner, temp_project):
        result = runner.invoke(app, ["list", "--path", str(temp_project)])

        assert result.exit_code == 0
        assert "mylib" in result.output
        assert "Total: 1 libraries" in result.output

    def test_list_json_command(self, runner, temp_project):
        result = runner.invoke(app, ["list", "--json", "--path", str(temp_project)])

        assert result.exit_code == 0
        assert json.loads(result.output) == ["mylib"]

    def test_show_json_command(self, runner, temp_project):
        result = runner.invoke(app, ["show", "mylib", "--json", "--path", str(temp_project)])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["definition"] == {
            "name": "mylib",
            "version": "1.0.0",
            "description": "My library",
        }
        assert data["files"] == [{"name": "mylib", "kind": "source", "extension": "cpp"}]

    def test_show_unknown_library(self, runner, temp_project):
        result = runner.invoke(app, ["show", "nope", "--path", str(temp_project)])

        assert result.exit_code == EXIT_NOT_FOUND

    def test_layout_command(self, runner, temp_project):
        result = runner.invoke(app, ["layout", "mylib", "--path", str(temp_project)])

        assert result.exit_code == 0
        assert "mylib: layout 2" in result.output

    def test_migrate_command(self, runner, temp_project):
        legacy_dir = temp_project / "libraries" / "old"
        legacy_dir.mkdir()
        (legacy_dir / "spark.json").write_text(json.dumps({"name": "old", "version": "0.1.0"}))
        (legacy_dir / "old.cpp").write_text('#include "old/old.h"\n')

        result = runner.invoke(app, ["migrate", "old", "--path", str(temp_project)])

        assert result.exit_code == 0
        assert (legacy_dir / "library.properties").read_text() == "name: old\nversion: 0.1.0"
        assert (legacy_dir / "old.cpp").read_text() == '#include "old.h"\n'

    def test_migrate_broken_descriptor(self, runner, temp_project):
        legacy_dir = temp_project / "libraries" / "broken"
        legacy_dir.mkdir()
        (legacy_dir / "spark.json").write_text("{")

        result = runner.invoke(app, ["migrate", "broken", "--path", str(temp_project)])

        assert result.exit_code == EXIT_FORMAT_ERROR

    def test_install_command(self, runner, temp_project):
        remote_library = Library(
            "swd",
            LibraryMetadata(name="swd", version="0.1.0", id="42"),
            files=[MemoryLibraryFile("swd", "source", "h", b"#pragma once\n")],
        )

        async def fake_fetch(name):
            return remote_library

        with patch(
            "sparklib.repository.build.BuildLibraryRepository.fetch",
            side_effect=fake_fetch,
        ):
            result = runner.invoke(
                app, ["install", "swd", "--layout", "1", "--path", str(temp_project)]
            )

        assert result.exit_code == 0
        library_dir = temp_project / "libraries" / "swd"
        assert json.loads((library_dir / "spark.json").read_text()) == {
            "name": "swd",
            "version": "0.1.0",
        }
        assert (library_dir / "swd.h").read_bytes() == b"#pragma once\n"

    def test_install_rejects_unknown_layout(self, runner, temp_project):
        result = runner.invoke(
            app, ["install", "swd", "--layout", "3", "--path", str(temp_project)]
        )

        assert result.exit_code == EXIT_BAD_USAGE
