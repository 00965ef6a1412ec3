"""Tests for the swbuild command line."""

import json
from pathlib import Path

import pytest

from swbuild import __version__, main


@pytest.fixture
def site(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a project directory with a built dist/ and chdir into it."""
    for name in ("SWBUILD_CACHE_ID", "SWBUILD_SW_DEST", "SWBUILD_GLOB_DIRECTORY", "SWBUILD_MAX_FILE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    dist = tmp_path / "dist"
    dist.mkdir()
    (dist / "index.html").write_text("<html></html>")
    (dist / "main.js").write_text("export default 1;")
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestGenerateCommand:
    """Tests for the generate subcommand."""

    def test_no_command_generates(self, site: Path, capsys: pytest.CaptureFixture) -> None:
        """Running without a subcommand writes dist/sw.js."""
        main([])
        assert (site / "dist" / "sw.js").exists()
        assert "which will precache 2 files" in capsys.readouterr().out

    def test_generate_with_config_file(self, site: Path, capsys: pytest.CaptureFixture) -> None:
        """A config file can change the patterns and destination."""
        config_path = site / "swbuild.yaml"
        config_path.write_text('glob_patterns: ["**/*.html"]\nsw_dest: build/worker.js\n')

        main(["generate", "-c", str(config_path)])

        assert (site / "build" / "worker.js").exists()
        assert not (site / "dist" / "sw.js").exists()
        assert "Generated build/worker.js, which will precache 1 files" in capsys.readouterr().out

    def test_missing_config_exits(self, site: Path) -> None:
        """An unreadable config file exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["generate", "-c", str(site / "missing.yaml")])
        assert exc_info.value.code == 1

    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        """--version prints the package version."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestManifestCommand:
    """Tests for the manifest subcommand."""

    def test_prints_manifest_json(self, site: Path, capsys: pytest.CaptureFixture) -> None:
        """The manifest is printed as JSON and nothing is written."""
        main(["manifest"])

        manifest = json.loads(capsys.readouterr().out)
        assert [entry["url"] for entry in manifest] == ["index.html", "main.js"]
        assert all(len(entry["revision"]) == 32 for entry in manifest)
        assert not (site / "dist" / "sw.js").exists()

    def test_warnings_go_to_stderr(self, site: Path, capsys: pytest.CaptureFixture) -> None:
        """Warnings do not pollute the JSON output."""
        config_path = site / "swbuild.yaml"
        config_path.write_text('glob_patterns: ["**/*.html", "**/*.webp"]\n')

        main(["manifest", "-c", str(config_path)])

        captured = capsys.readouterr()
        assert len(json.loads(captured.out)) == 1
        assert "doesn't match any files" in captured.err
