"""Configuration loading and management."""

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from cursor_history.errors import ConfigError

DEFAULT_ARCHIVE_PREFIX = "cursor_chat_history"
WORKSPACE_DB_NAME = "state.vscdb"


def default_cursor_root() -> Path | None:
    """Return Cursor's per-user data directory for this platform."""
    home = Path.home()
    system = platform.system()
    if system == "Darwin":
        return home / "Library" / "Application Support" / "Cursor"
    if system == "Windows":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) / "Cursor" if appdata else home / "AppData" / "Roaming" / "Cursor"
    if system == "Linux":
        return home / ".config" / "Cursor"
    return None


def default_workspace_path() -> Path | None:
    root = default_cursor_root()
    if root is None:
        return None
    return root / "User" / "workspaceStorage"


@dataclass
class StorageConfig:
    workspace_path: Path | None = field(default_factory=default_workspace_path)
    global_db: Path | None = None


@dataclass
class ExportConfig:
    archive_prefix: str = DEFAULT_ARCHIVE_PREFIX
    output_dir: Path = field(default_factory=Path.cwd)


@dataclass
class LoggingConfig:
    level: str = "INFO"
    log_dir: Path = field(default_factory=lambda: Path.home() / "cursor-history" / "logs")


@dataclass
class Config:
    storage: StorageConfig = field(default_factory=StorageConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


@dataclass(frozen=True)
class StoragePaths:
    """Resolved locations of the workspace and global databases."""

    workspace_root: Path
    global_db: Path

    @classmethod
    def from_config(cls, storage: StorageConfig) -> "StoragePaths":
        """Resolve storage paths, defaulting the global database location.

        Raises:
            ConfigError: If no workspace storage path is configured and the
                platform has no default
        """
        if storage.workspace_path is None:
            raise ConfigError("No workspace storage path configured; set WORKSPACE_PATH")
        global_db = storage.global_db
        if global_db is None:
            global_db = storage.workspace_path.parent / "globalStorage" / WORKSPACE_DB_NAME
        return cls(workspace_root=storage.workspace_path, global_db=global_db)

    def workspace_db(self, workspace_id: str) -> Path:
        """Path of a workspace's own database."""
        return self.workspace_root / workspace_id / WORKSPACE_DB_NAME


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(expand_env_var(path_str))))


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file.

    The WORKSPACE_PATH environment variable overrides the configured
    workspace storage path.
    """
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "cursor-history" / "config.yaml",
            Path("/etc/cursor-history/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    data: dict = {}
    if config_path is not None and config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file must contain a mapping: {config_path}")

    # Parse storage config
    storage_data = data.get("storage") or {}
    storage = StorageConfig()
    if storage_data.get("workspace_path"):
        storage.workspace_path = expand_path(storage_data["workspace_path"])
    if storage_data.get("global_db"):
        storage.global_db = expand_path(storage_data["global_db"])

    env_workspace_path = os.environ.get("WORKSPACE_PATH")
    if env_workspace_path:
        storage.workspace_path = expand_path(env_workspace_path)

    # Parse export config
    export_data = data.get("export") or {}
    export = ExportConfig(
        archive_prefix=export_data.get("archive_prefix", DEFAULT_ARCHIVE_PREFIX),
        output_dir=expand_path(export_data.get("output_dir", ".")),
    )

    # Parse logging config
    logging_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=str(logging_data.get("level", "INFO")).upper(),
        log_dir=expand_path(logging_data.get("log_dir", "~/cursor-history/logs")),
    )

    return Config(storage=storage, export=export, logging=logging_config)
