"""Service worker generation.

Async entry points for building the precache manifest and writing the
service worker file. Filesystem work (walking, hashing, writing) is blocking,
so it runs in a worker thread and the coroutine only awaits it.
"""

import asyncio
import logging
from pathlib import Path

from .config import GenerateSWConfig
from .manifest import GenerateError
from .manifest import get_manifest as _build_manifest
from .models import GenerateResult, ManifestResult
from .sw_template import render_service_worker

logger = logging.getLogger(__name__)

__all__ = ["GenerateError", "generate_sw", "get_manifest"]


def _write_service_worker(config: GenerateSWConfig) -> GenerateResult:
    manifest = _build_manifest(config)
    source = render_service_worker(config, manifest.entries)

    dest = Path(config.sw_dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the output byte-identical across platforms
    with open(dest, "w", encoding="utf-8", newline="") as f:
        f.write(source)

    logger.debug("Wrote %s (%d bytes)", dest, len(source.encode("utf-8")))

    return GenerateResult(
        warnings=list(manifest.warnings),
        count=manifest.count,
        size=manifest.size,
        file_paths=[str(dest)],
    )


async def generate_sw(config: GenerateSWConfig) -> GenerateResult:
    """Generate a precaching service worker at config.sw_dest.

    Args:
        config: Generator configuration.

    Returns:
        GenerateResult with warnings, precached file count and total size.

    Raises:
        GenerateError: If the glob directory is missing or the manifest is invalid.
        OSError: If a source file cannot be read or the destination cannot be written.
    """
    logger.debug("Generating service worker %s from %s", config.sw_dest, config.glob_directory)
    return await asyncio.to_thread(_write_service_worker, config)


async def get_manifest(config: GenerateSWConfig) -> ManifestResult:
    """Compute the precache manifest without writing a service worker."""
    return await asyncio.to_thread(_build_manifest, config)
