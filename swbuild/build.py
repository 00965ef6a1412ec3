"""Build step: generate dist/sw.js for the static site build.

Run after the bundler has populated ./dist/. Takes no arguments; the
configuration is fixed (see config.default_config). Generation failures are
not handled here: they end the process with a traceback and non-zero status.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import TextIO

from .config import GenerateSWConfig, default_config
from .generator import generate_sw
from .models import GenerateResult

Generator = Callable[[GenerateSWConfig], Awaitable[GenerateResult]]


def format_summary(sw_dest: str, result: GenerateResult) -> str:
    """Return the one-line summary printed after a successful build."""
    return f"Generated {sw_dest}, which will precache {result.count} files, totaling {result.size} bytes."


async def build(
    config: GenerateSWConfig | None = None,
    generate: Generator = generate_sw,
    out: TextIO | None = None,
    err: TextIO | None = None,
) -> GenerateResult:
    """Generate the service worker and report the outcome.

    Args:
        config: Generator configuration (default: the fixed dist/ build).
        generate: Coroutine function producing the service worker.
        out: Stream for the summary line (default: stdout).
        err: Stream for warnings (default: stderr).

    Returns:
        The generator's result.
    """
    if config is None:
        config = default_config()
    out = out if out is not None else sys.stdout
    err = err if err is not None else sys.stderr

    result = await generate(config)

    for warning in result.warnings:
        print(warning, file=err)
    print(format_summary(config.sw_dest, result), file=out)

    return result


def main() -> None:
    """Run the build step."""
    asyncio.run(build())
