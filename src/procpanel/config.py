"""Configuration system for procpanel."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class CollectorConfig:
    """Snapshot collection configuration."""

    workers: int = 1  # Threads used to collect PIDs; 1 collects sequentially


@dataclass
class QueryConfig:
    """Process listing defaults."""

    default_limit: int = 20  # Page size when the caller doesn't give one


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    json: bool = False  # JSON Lines instead of human-readable console output
    file: str = ""  # Optional rotating log file; empty disables it
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of backup log files to keep


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    page_size: int = 50  # Rows per page in the process table
    confirm_kill: bool = True  # Require pressing kill twice on the same row


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    collector: CollectorConfig = field(default_factory=CollectorConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procpanel"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("collector", "query", "logging", "tui"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() of an empty file are identical.

        Raises:
            ValueError: The file can't be parsed or holds an invalid value.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            collector=_load_collector_config(data.get("collector", {})),
            query=_load_query_config(data.get("query", {})),
            logging=_load_logging_config(data.get("logging", {})),
            tui=_load_tui_config(data.get("tui", {})),
        )


def _load_collector_config(data: dict) -> CollectorConfig:
    """Load collector config from TOML data."""
    d = CollectorConfig()
    workers = data.get("workers", d.workers)
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    return CollectorConfig(workers=workers)


def _load_query_config(data: dict) -> QueryConfig:
    """Load query config from TOML data."""
    d = QueryConfig()
    default_limit = data.get("default_limit", d.default_limit)
    if default_limit < 1:
        raise ValueError(f"default_limit must be >= 1, got {default_limit}")
    return QueryConfig(default_limit=default_limit)


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data, using dataclass defaults for missing fields."""
    d = LoggingConfig()
    level = str(data.get("level", d.level)).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid logging level: {level!r}. Must be one of {LOG_LEVELS}")
    return LoggingConfig(
        level=level,
        json=data.get("json", d.json),
        file=data.get("file", d.file),
        max_bytes=data.get("max_bytes", d.max_bytes),
        backup_count=data.get("backup_count", d.backup_count),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    d = TUIConfig()
    page_size = data.get("page_size", d.page_size)
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    return TUIConfig(
        page_size=page_size,
        confirm_kill=data.get("confirm_kill", d.confirm_kill),
    )
