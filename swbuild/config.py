"""Configuration loader with type-safe dataclasses."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml


class ConfigError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Fixed build configuration for the static site in dist/
DEFAULT_CACHE_ID = "keck-mb-parts-exchange-manager"
DEFAULT_DIST_DIR = "dist"
DEFAULT_SW_FILENAME = "sw.js"
DEFAULT_GLOB_DIRECTORY = "./dist/"
DEFAULT_GLOB_PATTERNS = ("**/*.{html,js,css}",)

DEFAULT_GLOB_IGNORES = ("**/node_modules/**/*",)
DEFAULT_MAX_FILE_SIZE = 2 * 1024 * 1024  # 2 MiB
DEFAULT_IGNORE_URL_PARAMETERS = ("^utm_", "^fbclid$")

RUNTIME_HANDLERS = ("CacheFirst", "CacheOnly", "NetworkFirst", "NetworkOnly", "StaleWhileRevalidate")
HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE")


def _check_regex(pattern: str, option: str) -> None:
    """Raise ConfigError if pattern is not a valid regular expression."""
    try:
        re.compile(pattern)
    except re.error as e:
        raise ConfigError(f"Invalid regular expression for {option}: {pattern!r} ({e})")


@dataclass(frozen=True)
class RuntimeCachingRule:
    """A runtime caching route applied to requests outside the precache.

    - url_pattern: Regular expression tested against the full request URL.
    - handler: Caching strategy name (CacheFirst, NetworkFirst, ...).
    - cache_name: Cache to store responses in (default: <cache_id>-runtime).
    - network_timeout_seconds: Fall back to cache after this many seconds (NetworkFirst only).
    - max_entries / max_age_seconds: Expiration limits for the runtime cache.
    """

    url_pattern: str
    handler: str
    method: str = "GET"
    cache_name: str | None = None
    network_timeout_seconds: int | None = None
    max_entries: int | None = None
    max_age_seconds: int | None = None

    def __post_init__(self) -> None:
        if not self.url_pattern:
            raise ConfigError("Runtime caching url_pattern cannot be empty")
        _check_regex(self.url_pattern, "runtime_caching.url_pattern")
        if self.handler not in RUNTIME_HANDLERS:
            raise ConfigError(
                f"Invalid runtime caching handler '{self.handler}'. Must be one of: {RUNTIME_HANDLERS}"
            )
        if self.method not in HTTP_METHODS:
            raise ConfigError(f"Invalid runtime caching method '{self.method}'. Must be one of: {HTTP_METHODS}")
        if self.cache_name is not None and not self.cache_name:
            raise ConfigError("Runtime caching cache_name cannot be empty")
        if self.network_timeout_seconds is not None:
            if self.handler != "NetworkFirst":
                raise ConfigError(
                    f"network_timeout_seconds is only supported with NetworkFirst (got {self.handler})"
                )
            if self.network_timeout_seconds < 1:
                raise ConfigError(
                    f"network_timeout_seconds must be at least 1 (got {self.network_timeout_seconds})"
                )
        if self.max_entries is not None and self.max_entries < 1:
            raise ConfigError(f"max_entries must be at least 1 (got {self.max_entries})")
        if self.max_age_seconds is not None and self.max_age_seconds < 1:
            raise ConfigError(f"max_age_seconds must be at least 1 (got {self.max_age_seconds})")


@dataclass(frozen=True)
class AdditionalEntry:
    """A URL precached in addition to the files matched on disk."""

    url: str
    revision: str | None = None

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError("Additional manifest entry url cannot be empty")


@dataclass(frozen=True)
class GenerateSWConfig:
    """Options for generating a precaching service worker.

    The first five fields are the ones the build step sets. The rest keep
    their defaults unless a config file overrides them.
    """

    cache_id: str
    sw_dest: str
    glob_directory: str
    glob_patterns: list[str]
    runtime_caching: list[RuntimeCachingRule] = field(default_factory=list)
    glob_ignores: list[str] = field(default_factory=lambda: list(DEFAULT_GLOB_IGNORES))
    maximum_file_size_to_cache_in_bytes: int = DEFAULT_MAX_FILE_SIZE
    dont_cache_bust_urls_matching: str | None = None
    modify_url_prefix: dict[str, str] = field(default_factory=dict)
    additional_manifest_entries: list[AdditionalEntry] = field(default_factory=list)
    navigate_fallback: str | None = None
    navigate_fallback_denylist: list[str] = field(default_factory=list)
    directory_index: str | None = "index.html"
    ignore_url_parameters_matching: list[str] = field(
        default_factory=lambda: list(DEFAULT_IGNORE_URL_PARAMETERS)
    )
    skip_waiting: bool = False
    clients_claim: bool = False
    cleanup_outdated_caches: bool = False

    def __post_init__(self) -> None:
        if not self.cache_id:
            raise ConfigError("cache_id cannot be empty")
        if not self.sw_dest:
            raise ConfigError("sw_dest cannot be empty")
        if not self.sw_dest.endswith(".js"):
            raise ConfigError(f"sw_dest must end with '.js' (got '{self.sw_dest}')")
        if not self.glob_directory:
            raise ConfigError("glob_directory cannot be empty")
        if not isinstance(self.glob_patterns, list) or not self.glob_patterns:
            raise ConfigError("glob_patterns must be a non-empty list")
        if any(not isinstance(p, str) or not p for p in self.glob_patterns):
            raise ConfigError("glob_patterns entries must be non-empty strings")
        if any(not isinstance(p, str) or not p for p in self.glob_ignores):
            raise ConfigError("glob_ignores entries must be non-empty strings")
        if self.maximum_file_size_to_cache_in_bytes < 1:
            raise ConfigError(
                "maximum_file_size_to_cache_in_bytes must be at least 1 "
                f"(got {self.maximum_file_size_to_cache_in_bytes})"
            )
        if self.dont_cache_bust_urls_matching is not None:
            _check_regex(self.dont_cache_bust_urls_matching, "dont_cache_bust_urls_matching")
        for pattern in self.navigate_fallback_denylist:
            _check_regex(pattern, "navigate_fallback_denylist")
        for pattern in self.ignore_url_parameters_matching:
            _check_regex(pattern, "ignore_url_parameters_matching")
        if self.navigate_fallback is not None and not self.navigate_fallback:
            raise ConfigError("navigate_fallback cannot be empty")


def default_config(cwd: str | None = None) -> GenerateSWConfig:
    """Return the fixed configuration for the site build in ./dist/.

    The destination is resolved against the current working directory
    (or cwd, when given) at call time.
    """
    base = Path(cwd) if cwd is not None else Path.cwd()
    return GenerateSWConfig(
        cache_id=DEFAULT_CACHE_ID,
        sw_dest=str(base / DEFAULT_DIST_DIR / DEFAULT_SW_FILENAME),
        glob_directory=DEFAULT_GLOB_DIRECTORY,
        glob_patterns=list(DEFAULT_GLOB_PATTERNS),
        runtime_caching=[],
    )


def _parse_str_list(value: object, option: str) -> list[str]:
    """Parse a list of strings, rejecting anything else."""
    if not isinstance(value, list):
        raise ConfigError(f"'{option}' must be a list")
    for item in value:
        if not isinstance(item, str):
            raise ConfigError(f"'{option}' entries must be strings (got {item!r})")
    return list(value)


_MISSING = object()


def _parse_str(data: dict, key: str, default: object = _MISSING, optional: bool = False) -> str | None:
    """Return data[key] as a string, rejecting other types.

    Missing keys fall back to default. None is accepted only when optional.
    """
    value = data.get(key, default)
    if value is _MISSING:
        raise ConfigError(f"'{key}' is required")
    if value is None:
        if optional:
            return None
        raise ConfigError(f"'{key}' must be a string (got null)")
    if not isinstance(value, str):
        raise ConfigError(f"'{key}' must be a string (got {value!r})")
    return value


def _parse_bool(data: dict, key: str, default: bool = False) -> bool:
    """Return data[key] as a boolean; strings like "false" are rejected."""
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false (got {value!r})")
    return value


def _parse_int(data: dict, key: str, default: int | None = None) -> int | None:
    """Return data[key] as an integer; booleans and fractional numbers are rejected."""
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer (got {value!r})")
    if isinstance(value, float):
        if not value.is_integer():
            raise ConfigError(f"'{key}' must be an integer (got {value!r})")
        return int(value)
    if not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer (got {value!r})")
    return value


def _parse_runtime_rule(data: dict, index: int) -> RuntimeCachingRule:
    """Parse a single runtime caching entry."""
    if not isinstance(data, dict):
        raise ConfigError(f"Runtime caching entry {index} must be a dictionary")

    if data.get("url_pattern") is None:
        raise ConfigError(f"Runtime caching entry {index} is missing 'url_pattern' field")
    if data.get("handler") is None:
        raise ConfigError(f"Runtime caching entry {index} is missing 'handler' field")

    return RuntimeCachingRule(
        url_pattern=_parse_str(data, "url_pattern"),
        handler=_parse_str(data, "handler"),
        method=_parse_str(data, "method", "GET").upper(),
        cache_name=_parse_str(data, "cache_name", None, optional=True),
        network_timeout_seconds=_parse_int(data, "network_timeout_seconds"),
        max_entries=_parse_int(data, "max_entries"),
        max_age_seconds=_parse_int(data, "max_age_seconds"),
    )


def _parse_additional_entry(data: object, index: int) -> AdditionalEntry:
    """Parse an additional manifest entry, given as a URL string or a mapping."""
    if isinstance(data, str):
        return AdditionalEntry(url=data)
    if not isinstance(data, dict):
        raise ConfigError(f"Additional manifest entry {index} must be a string or a dictionary")

    if data.get("url") is None:
        raise ConfigError(f"Additional manifest entry {index} is missing 'url' field")

    return AdditionalEntry(
        url=_parse_str(data, "url"),
        revision=_parse_str(data, "revision", None, optional=True),
    )


def _parse_modify_url_prefix(data: object) -> dict[str, str]:
    if not isinstance(data, dict):
        raise ConfigError("'modify_url_prefix' must be a dictionary")
    for prefix, replacement in data.items():
        if not isinstance(prefix, str) or not isinstance(replacement, (str, type(None))):
            raise ConfigError(
                f"'modify_url_prefix' must map strings to strings (got {prefix!r}: {replacement!r})"
            )
    return {prefix: replacement or "" for prefix, replacement in data.items()}


def _apply_env_overrides(config_data: dict) -> dict:
    """Apply environment variable overrides to configuration.

    Supported overrides:
    - SWBUILD_CACHE_ID: Override cache_id
    - SWBUILD_SW_DEST: Override sw_dest
    - SWBUILD_GLOB_DIRECTORY: Override glob_directory
    - SWBUILD_MAX_FILE_SIZE: Override maximum_file_size_to_cache_in_bytes
    - SWBUILD_SKIP_WAITING: Override skip_waiting (true/false)
    - SWBUILD_CLIENTS_CLAIM: Override clients_claim (true/false)
    """
    cache_id = os.environ.get("SWBUILD_CACHE_ID")
    if cache_id is not None:
        config_data["cache_id"] = cache_id

    sw_dest = os.environ.get("SWBUILD_SW_DEST")
    if sw_dest is not None:
        config_data["sw_dest"] = sw_dest

    glob_directory = os.environ.get("SWBUILD_GLOB_DIRECTORY")
    if glob_directory is not None:
        config_data["glob_directory"] = glob_directory

    max_size = os.environ.get("SWBUILD_MAX_FILE_SIZE")
    if max_size is not None:
        try:
            config_data["maximum_file_size_to_cache_in_bytes"] = int(max_size)
        except ValueError:
            raise ConfigError(f"SWBUILD_MAX_FILE_SIZE must be an integer (got {max_size!r})")

    skip_waiting = os.environ.get("SWBUILD_SKIP_WAITING")
    if skip_waiting is not None:
        config_data["skip_waiting"] = skip_waiting.lower() in ("true", "1", "yes")

    clients_claim = os.environ.get("SWBUILD_CLIENTS_CLAIM")
    if clients_claim is not None:
        config_data["clients_claim"] = clients_claim.lower() in ("true", "1", "yes")

    return config_data


def _read_yaml(config_path: str) -> dict:
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML configuration: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read configuration file: {e}")

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a YAML dictionary")

    return data


def load_config(config_path: str | None = None) -> GenerateSWConfig:
    """Load and validate generator configuration.

    Keys found in the YAML file override the fixed build defaults; environment
    variables override both.

    Args:
        config_path: Path to a YAML configuration file, or None for defaults only.

    Returns:
        Validated GenerateSWConfig object.

    Raises:
        ConfigError: If the file cannot be read or configuration is invalid.
    """
    data = _read_yaml(config_path) if config_path is not None else {}
    data = _apply_env_overrides(data)

    defaults = default_config()

    runtime_data = data.get("runtime_caching", [])
    if not isinstance(runtime_data, list):
        raise ConfigError("'runtime_caching' must be a list")
    runtime_caching = [_parse_runtime_rule(rule, i) for i, rule in enumerate(runtime_data)]

    additional_data = data.get("additional_manifest_entries", [])
    if not isinstance(additional_data, list):
        raise ConfigError("'additional_manifest_entries' must be a list")
    additional = [_parse_additional_entry(entry, i) for i, entry in enumerate(additional_data)]

    max_size = _parse_int(data, "maximum_file_size_to_cache_in_bytes", defaults.maximum_file_size_to_cache_in_bytes)
    if max_size is None:
        raise ConfigError("'maximum_file_size_to_cache_in_bytes' must be an integer (got null)")

    return GenerateSWConfig(
        cache_id=_parse_str(data, "cache_id", defaults.cache_id),
        sw_dest=_parse_str(data, "sw_dest", defaults.sw_dest),
        glob_directory=_parse_str(data, "glob_directory", defaults.glob_directory),
        glob_patterns=_parse_str_list(data.get("glob_patterns", defaults.glob_patterns), "glob_patterns"),
        runtime_caching=runtime_caching,
        glob_ignores=_parse_str_list(data.get("glob_ignores", defaults.glob_ignores), "glob_ignores"),
        maximum_file_size_to_cache_in_bytes=max_size,
        dont_cache_bust_urls_matching=_parse_str(data, "dont_cache_bust_urls_matching", None, optional=True),
        modify_url_prefix=_parse_modify_url_prefix(data.get("modify_url_prefix", {})),
        additional_manifest_entries=additional,
        navigate_fallback=_parse_str(data, "navigate_fallback", None, optional=True),
        navigate_fallback_denylist=_parse_str_list(
            data.get("navigate_fallback_denylist", []), "navigate_fallback_denylist"
        ),
        directory_index=_parse_str(data, "directory_index", defaults.directory_index, optional=True),
        ignore_url_parameters_matching=_parse_str_list(
            data.get("ignore_url_parameters_matching", defaults.ignore_url_parameters_matching),
            "ignore_url_parameters_matching",
        ),
        skip_waiting=_parse_bool(data, "skip_waiting"),
        clients_claim=_parse_bool(data, "clients_claim"),
        cleanup_outdated_caches=_parse_bool(data, "cleanup_outdated_caches"),
    )
