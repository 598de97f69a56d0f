import logging
import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .constants import APP_NAME, CONFIG_FILE, DEFAULT_PER_PAGE, URL_FIELDS
from .errors import ConfigError

logger = logging.getLogger(APP_NAME)


def parse_size(value: int | str) -> int:
    """Converts human-readable size strings (e.g., '100MB') to bytes."""
    if isinstance(value, int):
        return value
    match = re.match(r"^(\d+(?:\.\d+)?)\s*([kmg]b?)$", str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid size format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {
        "k": 1024,
        "kb": 1024,
        "m": 1024**2,
        "mb": 1024**2,
        "g": 1024**3,
        "gb": 1024**3,
    }
    return int(num * multiplier[unit])


def parse_time(value: int | float | str) -> float:
    """Converts human-readable time strings (e.g., '1hr', '30m') to seconds."""
    if isinstance(value, (int, float)):
        return float(value)
    match = re.match(
        r"^(\d+(?:\.\d+)?)\s*(s|sec|m|min|h|hr)s?$", str(value).strip().lower()
    )
    if not match:
        raise ValueError(f"Invalid time format '{value}'")
    num, unit = float(match.group(1)), match.group(2)
    multiplier = {"s": 1, "sec": 1, "m": 60, "min": 60, "h": 3600, "hr": 3600}
    return num * multiplier[unit]


def parse_bool(value: bool | str) -> bool:
    """Converts environment-style booleans ('1', 'yes', 'true') to bool."""
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid boolean '{value}'")


def default_concurrency() -> int:
    """A small multiple of the available CPU parallelism, capped at 32."""
    return min(32, (os.cpu_count() or 1) * 4)


@dataclass
class GitHubConfig:
    """Remote listing settings.

    Attributes:
        repo_url (str | None): The team repository listing endpoint, e.g.
            https://api.github.com/organizations/<org_id>/team/<team_id>/repos.
        token (str | None): Access token presented as a Bearer credential.
        prefix (str): Only repositories whose name starts with this are synced.
        strip_prefix (bool): Drop `prefix` from local directory names.
        url_field (str): Payload field used as the clone URL.
        include_archived (bool): Sync archived repositories instead of reporting them.
        per_page (int): Page size requested from the endpoint.
        request_timeout (float): Seconds before a listing request times out.
    """

    repo_url: str | None = None
    token: str | None = field(default=None, repr=False)
    prefix: str = ""
    strip_prefix: bool = False
    url_field: str = "clone_url"
    include_archived: bool = False
    per_page: int = DEFAULT_PER_PAGE
    request_timeout: float = 30.0


@dataclass
class SyncConfig:
    """Execution settings.

    Attributes:
        root_dir (Path | None): Directory holding all checkouts.
        concurrency (int): Maximum simultaneous pull/clone operations.
        operation_timeout (float): Seconds before a single git process is killed.
        run_timeout (float | None): Seconds after which no new operation starts.
        offload_blocking (bool): Run git on a dedicated thread pool.
    """

    root_dir: Path | None = None
    concurrency: int = field(default_factory=default_concurrency)
    operation_timeout: float = 600.0
    run_timeout: float | None = None
    offload_blocking: bool = True


@dataclass
class LoggingConfig:
    """Logging settings.

    Attributes:
        file (Path | None): Optional rotating log file.
        max_log_size (int): Max bytes for the log file before rotation.
    """

    file: Path | None = None
    max_log_size: int = 5 * 1024 * 1024


# Environment variable -> (section, key)
ENV_VARS: dict[str, tuple[str, str]] = {
    "GITHUB_TEAM_REPO_URL": ("github", "repo_url"),
    "GITHUB_TOKEN": ("github", "token"),
    "GITHUB_TEAM_PREFIX": ("github", "prefix"),
    "REPOSYNC_STRIP_PREFIX": ("github", "strip_prefix"),
    "REPO_ROOT_DIR": ("sync", "root_dir"),
    "REPOSYNC_CONCURRENCY": ("sync", "concurrency"),
}


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        github (GitHubConfig): Remote listing settings.
        sync (SyncConfig): Execution settings.
        logging (LoggingConfig): Logging settings.
    """

    github: GitHubConfig = field(default_factory=GitHubConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(
        cls, path: Path | None = None, env: Mapping[str, str] | None = None
    ) -> "Config":
        """Loads and merges configuration from defaults, file and environment.

        Args:
            path (Path | None): TOML file to read. Defaults to $REPOSYNC_CONFIG,
                                then the global CONFIG_FILE.
            env (Mapping[str, str] | None): Environment to read. Defaults to
                                            os.environ.

        Returns:
            Config: The merged configuration object.
        """
        env = os.environ if env is None else env
        instance = cls()

        if path is None:
            path = Path(env["REPOSYNC_CONFIG"]) if env.get("REPOSYNC_CONFIG") else CONFIG_FILE
        if path.exists():
            instance._merge_from_file(path)

        instance._merge_from_env(env)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Config syntax error in {path}: {e}") from e
        except OSError as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return

        unknown = set(data) - {"github", "sync", "logging"}
        if unknown:
            logger.warning(
                f"Unknown config sections in {path}: {', '.join(sorted(unknown))}. Ignoring."
            )

        if "github" in data:
            self.github = self._update_dataclass("github", self.github, data["github"])
        if "sync" in data:
            self.sync = self._update_dataclass("sync", self.sync, data["sync"])
        if "logging" in data:
            self.logging = self._update_dataclass(
                "logging", self.logging, data["logging"]
            )

    def _merge_from_env(self, env: Mapping[str, str]) -> None:
        for var, (section, key) in ENV_VARS.items():
            if var not in env:
                continue
            current = getattr(self, section)
            setattr(
                self, section, self._update_dataclass(section, current, {key: env[var]})
            )

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Updates a dataclass, warning on invalid keys and parsing human-readable formats."""
        valid_keys = instance.__dataclass_fields__.keys()
        filtered_updates = {}

        invalid_keys = set(updates.keys()) - set(valid_keys)
        if invalid_keys:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(sorted(invalid_keys))}. Ignoring."
            )

        for k, v in updates.items():
            if k not in valid_keys:
                continue

            try:
                if k == "max_log_size":
                    filtered_updates[k] = parse_size(v)
                elif k in ("operation_timeout", "run_timeout", "request_timeout"):
                    filtered_updates[k] = parse_time(v)
                elif k in ("concurrency", "per_page"):
                    filtered_updates[k] = int(v)
                elif k in ("strip_prefix", "include_archived", "offload_blocking"):
                    filtered_updates[k] = parse_bool(v)
                elif k in ("root_dir", "file"):
                    filtered_updates[k] = Path(v).expanduser()
                else:
                    filtered_updates[k] = v
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{k}: {e}. Falling back to default."
                )

        return replace(instance, **filtered_updates)

    def apply_overrides(self, section: str, **overrides: Any) -> None:
        """Applies explicitly given values (e.g. CLI flags), skipping None.

        Args:
            section (str): The section name ('github', 'sync' or 'logging').
            **overrides: Keys and values for that section.
        """
        updates = {k: v for k, v in overrides.items() if v is not None}
        if updates:
            current = getattr(self, section)
            setattr(self, section, self._update_dataclass(section, current, updates))

    def validate(self) -> None:
        """Checks that the configuration can drive a run.

        Raises:
            ConfigError: If a required option is missing or a value is out of range.
        """
        if not self.github.repo_url:
            raise ConfigError(
                "No repository listing endpoint configured "
                "(--github-team-repo-url or GITHUB_TEAM_REPO_URL)."
            )
        if self.sync.root_dir is None:
            raise ConfigError(
                "No local root directory configured (--repo-root-dir or REPO_ROOT_DIR)."
            )
        if self.sync.concurrency < 1:
            raise ConfigError(
                f"Concurrency must be a positive integer, got {self.sync.concurrency}."
            )
        if self.github.per_page < 1:
            raise ConfigError(f"per_page must be positive, got {self.github.per_page}.")
        if self.github.url_field not in URL_FIELDS:
            raise ConfigError(
                f"Unknown url_field '{self.github.url_field}' "
                f"(expected one of: {', '.join(URL_FIELDS)})."
            )
