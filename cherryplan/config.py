"""Configuration management for cherryplan."""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from .empty_commits import DEFAULT_IGNORE_PATHS
from .exceptions import ConfigError
from .tickets import DEFAULT_TICKET_PREFIXES

console = Console()


@dataclass
class AnalysisSettings:
    """Plain values the analysis engine consumes."""

    ticket_prefixes: List[str] = field(default_factory=lambda: list(DEFAULT_TICKET_PREFIXES))
    ignore_paths: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATHS))
    ignore_whitespace: bool = True
    parallelism: int = 4
    max_empty_commits: Optional[int] = None
    temporal_window_hours: float = 4.0
    max_suggestions: int = 5
    verbose: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AnalysisSettings":
        """Build settings from a loaded configuration dictionary."""
        defaults = cls()
        tickets = config.get("tickets") or {}
        analysis = config.get("analysis") or {}

        max_empty = analysis.get("max_empty_commits", defaults.max_empty_commits)
        prefixes = tickets.get("prefixes") or defaults.ticket_prefixes
        try:
            settings = cls(
                ticket_prefixes=[str(prefix).upper() for prefix in prefixes],
                ignore_paths=list(analysis.get("ignore_paths", defaults.ignore_paths) or []),
                ignore_whitespace=bool(
                    analysis.get("ignore_whitespace", defaults.ignore_whitespace)
                ),
                parallelism=max(1, int(analysis.get("parallelism", defaults.parallelism))),
                max_empty_commits=int(max_empty) if max_empty is not None else None,
                temporal_window_hours=float(
                    analysis.get("temporal_window_hours", defaults.temporal_window_hours)
                ),
                max_suggestions=int(analysis.get("max_suggestions", defaults.max_suggestions)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid analysis setting: {e}") from e

        if settings.max_empty_commits is not None and settings.max_empty_commits < 1:
            raise ConfigError(
                f"analysis.max_empty_commits must be at least 1, got {settings.max_empty_commits}"
            )
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_config_dir() -> Path:
    """Get cherryplan configuration directory."""
    config_dir = Path.home() / ".cherryplan"
    config_dir.mkdir(exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    """Get configuration file path."""
    return get_config_dir() / "config.yml"


def default_config() -> Dict[str, Any]:
    """Configuration used when no file exists."""
    settings = AnalysisSettings()
    return {
        "default": {"source_branch": "deploy/dev", "target_branch": "deploy/uat"},
        "tickets": {"prefixes": list(settings.ticket_prefixes)},
        "analysis": {
            "ignore_paths": list(settings.ignore_paths),
            "ignore_whitespace": settings.ignore_whitespace,
            "parallelism": settings.parallelism,
            "max_empty_commits": settings.max_empty_commits,
            "temporal_window_hours": settings.temporal_window_hours,
            "max_suggestions": settings.max_suggestions,
        },
    }


def load_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from file."""
    config_file = config_file or get_config_file()
    if not config_file.exists():
        return default_config()

    with open(config_file) as f:
        return yaml.safe_load(f) or {}


def save_config(config: Dict[str, Any], config_file: Optional[Path] = None) -> None:
    """Save configuration to file."""
    config_file = config_file or get_config_file()
    with open(config_file, "w") as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def get_analysis_settings(config_file: Optional[Path] = None) -> AnalysisSettings:
    """Load configuration and convert it to AnalysisSettings."""
    return AnalysisSettings.from_config(load_config(config_file))


def set_prefixes_command(prefixes: List[str]) -> None:
    """Set the valid ticket prefixes."""
    cleaned = [prefix.strip().upper() for prefix in prefixes if prefix.strip()]
    if not cleaned:
        console.print("[red]Error: At least one ticket prefix is required[/red]")
        raise typer.Exit(1)

    config = load_config()
    config.setdefault("tickets", {})["prefixes"] = cleaned
    save_config(config)

    console.print(f"[green]✅ Ticket prefixes set to: {', '.join(cleaned)}[/green]")


def show_config_command(format_type: str = "table") -> None:
    """Show current configuration."""
    try:
        settings = get_analysis_settings()
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if format_type == "json":
        output = {**settings.to_dict(), "config_file": str(get_config_file())}
        output.pop("verbose", None)
        console.print(json.dumps(output, indent=2), markup=False, highlight=False, soft_wrap=True)
        return

    console.print("[bold]Cherryplan Configuration[/bold]")
    console.print(f"Ticket prefixes: {', '.join(settings.ticket_prefixes)}")
    console.print(f"Ignored paths: {', '.join(settings.ignore_paths) or '[dim]none[/dim]'}")
    console.print(f"Ignore whitespace: {settings.ignore_whitespace}")
    console.print(f"Parallelism: {settings.parallelism}")
    console.print(f"Stop after empty commits: {settings.max_empty_commits or 'never'}")
    console.print(f"Config file: {get_config_file()}")
