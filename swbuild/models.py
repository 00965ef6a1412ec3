"""Data models for precache manifests and generation results."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ManifestEntry:
    """A single URL to precache.

    Attributes:
        url: URL relative to the service worker scope (e.g. "index.html").
        revision: MD5 hex digest of the file content, or None when the URL
            is already cache-busted (e.g. a hashed bundle name).
        size: File size in bytes; 0 for entries not backed by a file.
    """

    url: str
    revision: str | None
    size: int = 0

    def to_dict(self) -> dict:
        """Return the {url, revision} form embedded in the service worker."""
        return {"revision": self.revision, "url": self.url}


@dataclass(frozen=True)
class ManifestResult:
    """Precache manifest computed from the glob directory.

    Attributes:
        entries: Manifest entries in precache order.
        count: Number of entries.
        size: Total size in bytes of the files behind the entries.
        warnings: Non-fatal problems found while building the manifest.
    """

    entries: list[ManifestEntry]
    count: int
    size: int
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GenerateResult:
    """Outcome of writing a service worker.

    Attributes:
        warnings: Non-fatal problems, in the order they were found.
        count: Number of precached URLs.
        size: Total size in bytes of the precached files.
        file_paths: Files written by the generator.
    """

    warnings: list[str]
    count: int
    size: int
    file_paths: list[str] = field(default_factory=list)
