"""Tests for the build step."""

import asyncio
import io
import re
import subprocess
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from swbuild.build import build, format_summary
from swbuild.config import GenerateSWConfig
from swbuild.manifest import GenerateError
from swbuild.models import GenerateResult

REPO_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def site(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a project directory with a built dist/ and chdir into it."""
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<html><body>Parts Exchange</body></html>")
    (dist / "assets" / "app.js").write_text("document.title = 'Parts';")
    (dist / "assets" / "app.css").write_text("body { font-family: sans-serif; }")
    (dist / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def config() -> GenerateSWConfig:
    """Return a configuration for stubbed builds."""
    return GenerateSWConfig(
        cache_id="stub-cache",
        sw_dest="/srv/site/dist/sw.js",
        glob_directory="./dist/",
        glob_patterns=["**/*.html"],
    )


class TestFormatSummary:
    """Tests for the summary line."""

    def test_summary_format(self) -> None:
        """Summary names the destination, count and size."""
        result = GenerateResult(warnings=[], count=12, size=34567)
        assert format_summary("/srv/site/dist/sw.js", result) == (
            "Generated /srv/site/dist/sw.js, which will precache 12 files, totaling 34567 bytes."
        )


class TestBuildWithStub:
    """Tests for build() with a stubbed generator."""

    def test_prints_summary(self, config: GenerateSWConfig) -> None:
        """The summary reflects the generator's reported result."""
        generate = AsyncMock(return_value=GenerateResult(warnings=[], count=3, size=1234))
        out, err = io.StringIO(), io.StringIO()

        asyncio.run(build(config, generate=generate, out=out, err=err))

        assert out.getvalue() == (
            "Generated /srv/site/dist/sw.js, which will precache 3 files, totaling 1234 bytes.\n"
        )
        assert err.getvalue() == ""

    def test_calls_generator_once_with_config(self, config: GenerateSWConfig) -> None:
        """The generator is awaited exactly once with the configuration."""
        generate = AsyncMock(return_value=GenerateResult(warnings=[], count=0, size=0))
        asyncio.run(build(config, generate=generate, out=io.StringIO(), err=io.StringIO()))
        generate.assert_awaited_once_with(config)

    def test_prints_warnings_in_order(self, config: GenerateSWConfig) -> None:
        """Each warning is printed on its own line, in order, before the summary."""
        warnings = ["first warning", "second warning", "third warning"]
        generate = AsyncMock(return_value=GenerateResult(warnings=warnings, count=1, size=10))
        out, err = io.StringIO(), io.StringIO()

        asyncio.run(build(config, generate=generate, out=out, err=err))

        assert err.getvalue().splitlines() == warnings
        assert len(out.getvalue().splitlines()) == 1

    def test_returns_generator_result(self, config: GenerateSWConfig) -> None:
        """build() returns what the generator returned."""
        expected = GenerateResult(warnings=["w"], count=2, size=20)
        generate = AsyncMock(return_value=expected)
        result = asyncio.run(build(config, generate=generate, out=io.StringIO(), err=io.StringIO()))
        assert result is expected

    def test_failure_propagates(self, config: GenerateSWConfig) -> None:
        """A failing generator is not caught and nothing is printed."""
        generate = AsyncMock(side_effect=GenerateError("Unable to find glob directory: ./dist/"))
        out, err = io.StringIO(), io.StringIO()

        with pytest.raises(GenerateError, match="Unable to find glob directory"):
            asyncio.run(build(config, generate=generate, out=out, err=err))

        assert out.getvalue() == ""
        assert err.getvalue() == ""

    def test_uses_fixed_config_by_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without a config, the fixed dist/ configuration is used."""
        monkeypatch.chdir(tmp_path)
        generate = AsyncMock(return_value=GenerateResult(warnings=[], count=0, size=0))
        out = io.StringIO()

        asyncio.run(build(generate=generate, out=out, err=io.StringIO()))

        used = generate.await_args.args[0]
        assert used.cache_id == "keck-mb-parts-exchange-manager"
        assert used.sw_dest == str(Path.cwd() / "dist" / "sw.js")
        assert used.glob_directory == "./dist/"
        assert used.glob_patterns == ["**/*.{html,js,css}"]
        assert used.runtime_caching == []
        assert out.getvalue().startswith(f"Generated {used.sw_dest}, ")


class TestBuildEndToEnd:
    """Tests for build() with the real generator."""

    def test_writes_service_worker(self, site: Path, capsys: pytest.CaptureFixture) -> None:
        """Building over dist/ writes dist/sw.js and prints the summary."""
        result = asyncio.run(build())

        sw_path = Path.cwd() / "dist" / "sw.js"
        assert sw_path.exists()
        assert result.count == 3

        captured = capsys.readouterr()
        assert captured.out == format_summary(str(sw_path), result) + "\n"
        assert captured.err == ""

    def test_ignores_unlisted_extensions(self, site: Path) -> None:
        """Only html, js and css files are precached."""
        asyncio.run(build(out=io.StringIO(), err=io.StringIO()))
        source = (site / "dist" / "sw.js").read_text(encoding="utf-8")
        assert '"url": "assets/app.js"' in source
        assert "favicon.ico" not in source

    def test_is_idempotent(self, site: Path) -> None:
        """Running the build twice yields a byte-identical worker."""
        asyncio.run(build(out=io.StringIO(), err=io.StringIO()))
        first = (site / "dist" / "sw.js").read_bytes()
        asyncio.run(build(out=io.StringIO(), err=io.StringIO()))
        assert (site / "dist" / "sw.js").read_bytes() == first

    def test_missing_dist_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Without dist/, the build fails and writes nothing."""
        monkeypatch.chdir(tmp_path)
        with pytest.raises(GenerateError):
            asyncio.run(build(out=io.StringIO(), err=io.StringIO()))
        assert not (tmp_path / "dist" / "sw.js").exists()


class TestBuildScript:
    """Tests for running generate_sw.py as a process."""

    def _run(self, cwd: Path) -> subprocess.CompletedProcess:
        return subprocess.run(
            [sys.executable, str(REPO_ROOT / "generate_sw.py")],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=60,
        )

    def test_script_succeeds(self, site: Path) -> None:
        """The script exits 0 and prints one summary line."""
        proc = self._run(site)
        assert proc.returncode == 0, proc.stderr
        lines = proc.stdout.splitlines()
        assert len(lines) == 1
        assert re.fullmatch(r"Generated .+sw\.js, which will precache 3 files, totaling \d+ bytes\.", lines[0])
        assert (site / "dist" / "sw.js").exists()

    def test_script_fails_without_dist(self, tmp_path: Path) -> None:
        """The script exits non-zero with a traceback when dist/ is missing."""
        proc = self._run(tmp_path)
        assert proc.returncode != 0
        assert "GenerateError" in proc.stderr
        assert proc.stdout == ""
        assert not (tmp_path / "dist" / "sw.js").exists()
