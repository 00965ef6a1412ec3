"""Precache manifest construction.

Enumerates the files under the glob directory, filters them through the
configured glob patterns, and fingerprints each one so the service worker
can tell when a cached copy is stale.

Glob syntax:
- `**/` matches zero or more directories
- `*` matches within a single path segment, `?` matches one character
- `[abc]` / `[!abc]` character classes
- `{a,b}` alternatives, expanded before matching
"""

import hashlib
import json
import logging
import re
from pathlib import Path

from .config import GenerateSWConfig
from .models import ManifestEntry, ManifestResult

logger = logging.getLogger(__name__)

# Read files in 64 KiB chunks when hashing
_HASH_CHUNK_SIZE = 64 * 1024


class GenerateError(Exception):
    """Raised when the precache manifest or service worker cannot be generated."""

    pass


def _find_closing_brace(pattern: str, start: int) -> int:
    """Return the index of the brace closing the one at start, or -1."""
    depth = 0
    for i in range(start, len(pattern)):
        if pattern[i] == "{":
            depth += 1
        elif pattern[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def expand_braces(pattern: str) -> list[str]:
    """Expand `{a,b}` groups into separate patterns, preserving order.

    Groups without a comma are kept literally. An unclosed `{` is a literal
    character and later balanced groups still expand.
    """
    for start, char in enumerate(pattern):
        if char != "{":
            continue
        end = _find_closing_brace(pattern, start)
        if end == -1:
            continue
        options = _split_top_level(pattern[start + 1 : end])
        if len(options) < 2:
            # Literal group; continue expanding what follows it
            head = pattern[: end + 1]
            return [head + rest for rest in expand_braces(pattern[end + 1 :])]
        prefix, suffix = pattern[:start], pattern[end + 1 :]
        expanded: list[str] = []
        for option in options:
            for candidate in expand_braces(prefix + option + suffix):
                if candidate not in expanded:
                    expanded.append(candidate)
        return expanded
    return [pattern]


def _split_top_level(body: str) -> list[str]:
    """Split a brace group body on commas that are not nested in braces."""
    parts: list[str] = []
    depth = 0
    current = ""
    for char in body:
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current)
            current = ""
        else:
            current += char
    parts.append(current)
    return parts


def _translate_class(body: str) -> str:
    """Translate a glob character class body into a regex class.

    Only a leading `!`/`^` (negation) and inner `-` (ranges) keep their
    meaning; every other character is matched literally.
    """
    negate = body[:1] in ("!", "^")
    if negate:
        body = body[1:]
    out = []
    for i, char in enumerate(body):
        if char == "-" and 0 < i < len(body) - 1:
            out.append("-")
        else:
            out.append(re.escape(char))
    return "[" + ("^" if negate else "") + "".join(out) + "]"


def glob_to_regex(pattern: str) -> re.Pattern:
    """Translate a brace-free glob pattern into an anchored regex over POSIX paths."""
    while pattern.startswith("./"):
        pattern = pattern[2:]

    out = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    out.append("(?:.*/)?")
                    i += 3
                else:
                    out.append(".*")
                    i += 2
                continue
            out.append("[^/]*")
        elif char == "?":
            out.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            body = pattern[i + 1 : end] if end != -1 else ""
            if body in ("", "!", "^"):
                out.append(re.escape(char))
            else:
                out.append(_translate_class(body))
                i = end
        else:
            out.append(re.escape(char))
        i += 1

    return re.compile("^" + "".join(out) + "$")


def compile_glob(pattern: str) -> list[re.Pattern]:
    """Compile a glob pattern, including its brace alternatives."""
    return [glob_to_regex(p) for p in expand_braces(pattern)]


def _matches(path: str, regexes: list[re.Pattern]) -> bool:
    return any(regex.match(path) for regex in regexes)


def _list_files(root: Path) -> list[tuple[str, Path]]:
    """List regular files under root as sorted (posix relpath, path) pairs.

    Files inside dot-directories, and dotfiles, are skipped.
    """
    files = []
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if not path.is_file():
            continue
        files.append((rel.as_posix(), path))
    files.sort(key=lambda item: item[0])
    return files


def file_revision(path: Path) -> str:
    """Return the MD5 hex digest of a file's content."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _sw_dest_relpath(config: GenerateSWConfig, root: Path) -> str | None:
    """Return sw_dest relative to the glob directory, or None if it lies outside."""
    try:
        return Path(config.sw_dest).resolve().relative_to(root.resolve()).as_posix()
    except ValueError:
        return None


def _modify_url(url: str, prefixes: dict[str, str]) -> str:
    for prefix, replacement in prefixes.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


def _no_match_warning(config: GenerateSWConfig, pattern: str) -> str:
    details = json.dumps(
        {
            "globDirectory": config.glob_directory,
            "globPattern": pattern,
            "globIgnores": config.glob_ignores,
        },
        indent=2,
    )
    return f"One of the glob patterns doesn't match any files. Please remove or fix the following: {details}"


def get_manifest(config: GenerateSWConfig) -> ManifestResult:
    """Build the precache manifest for the configured glob directory.

    Args:
        config: Generator configuration.

    Returns:
        ManifestResult with entries in pattern order, then additional entries.

    Raises:
        GenerateError: If the glob directory is missing or the manifest has
            conflicting entries.
    """
    root = Path(config.glob_directory)
    if not root.is_dir():
        raise GenerateError(f"Unable to find glob directory: {config.glob_directory}")

    files = _list_files(root)
    logger.debug("Found %d files under %s", len(files), root)

    ignores = [regex for pattern in config.glob_ignores for regex in compile_glob(pattern)]
    sw_dest_rel = _sw_dest_relpath(config, root)
    cache_bust_skip = (
        re.compile(config.dont_cache_bust_urls_matching) if config.dont_cache_bust_urls_matching else None
    )

    warnings: list[str] = []
    entries: list[ManifestEntry] = []
    seen: set[str] = set()
    total_size = 0

    for pattern in config.glob_patterns:
        regexes = compile_glob(pattern)
        matched = [
            (rel, path)
            for rel, path in files
            if _matches(rel, regexes) and not _matches(rel, ignores) and rel != sw_dest_rel
        ]
        if not matched:
            warnings.append(_no_match_warning(config, pattern))
            continue

        for rel, path in matched:
            if rel in seen:
                continue
            seen.add(rel)

            size = path.stat().st_size
            if size > config.maximum_file_size_to_cache_in_bytes:
                warnings.append(
                    f"{rel} is {size} bytes, and won't be precached. "
                    "Configure maximum_file_size_to_cache_in_bytes to change this limit."
                )
                continue

            url = _modify_url(rel, config.modify_url_prefix)
            if cache_bust_skip is not None and cache_bust_skip.search(url):
                revision = None
            else:
                revision = file_revision(path)

            entries.append(ManifestEntry(url=url, revision=revision, size=size))
            total_size += size

    urls = {entry.url for entry in entries}
    for extra in config.additional_manifest_entries:
        if extra.url in urls:
            raise GenerateError(f"Multiple entries in the precache manifest for the same URL: {extra.url}")
        urls.add(extra.url)
        entries.append(ManifestEntry(url=extra.url, revision=extra.revision))

    logger.debug("Precache manifest has %d entries (%d bytes)", len(entries), total_size)

    return ManifestResult(entries=entries, count=len(entries), size=total_size, warnings=warnings)
