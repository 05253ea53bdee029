"""Configuration management for repograph."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from repograph.schemas.heatmap import HeatmapGranularity

logger = logging.getLogger(__name__)

USER_CONFIG_PATH = Path.home() / ".repograph" / "config.yaml"
PROJECT_CONFIG_NAME = ".repograph.yaml"
OUTPUT_FORMATS = ("json", "summary")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config:
    """Configuration manager with hierarchy: CLI args > project config > user config > defaults."""

    def __init__(self):
        """Initialize configuration with default values."""
        self.cache_ttl_seconds: float = 300.0
        self.max_workspace_symbols: int = 120
        self.dataset_limit_per_app: int = 150
        self.max_scope_files: int = 5000
        self.heatmap_window_days: int = 90
        self.heatmap_granularity: str = "topLevel"
        self.output_format: str = "json"
        self.verbose: bool = True
        self.log_level: str = "INFO"
        self.json_logging: bool = False
        self.log_file: Optional[str] = None

    @classmethod
    def load(
        cls,
        cli_args: Optional[dict[str, Any]] = None,
        user_config_path: Optional[Path] = None,
        project_dir: Optional[Path] = None,
    ) -> "Config":
        """
        Load configuration from hierarchy: CLI args > project config > user config > defaults.

        Args:
            cli_args: Dictionary of CLI arguments to override config
            user_config_path: User config file (default: ~/.repograph/config.yaml)
            project_dir: Directory holding .repograph.yaml (default: current directory)

        Returns:
            Config instance with loaded values
        """
        config = cls()

        user_path = user_config_path or USER_CONFIG_PATH
        if user_path.exists():
            config._load_file(user_path, config)

        project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
        if project_path.exists():
            config._load_file(project_path, config)

        if cli_args:
            for key, value in cli_args.items():
                if value is not None and hasattr(config, key):
                    setattr(config, key, value)

        config.validate()
        return config

    def validate(self) -> None:
        """Reset settings with unusable values to their defaults, with a warning for each."""
        defaults = Config()
        choices = {
            "heatmap_granularity": tuple(g.value for g in HeatmapGranularity),
            "output_format": OUTPUT_FORMATS,
            "log_level": LOG_LEVELS,
        }
        if isinstance(self.log_level, str):
            self.log_level = self.log_level.upper()
        for key, allowed in choices.items():
            if getattr(self, key) not in allowed:
                logger.warning("Invalid %s %r; using %r", key, getattr(self, key), getattr(defaults, key))
                setattr(self, key, getattr(defaults, key))

        positive = (
            "cache_ttl_seconds",
            "max_workspace_symbols",
            "dataset_limit_per_app",
            "max_scope_files",
            "heatmap_window_days",
        )
        for key in positive:
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                logger.warning("Invalid %s %r; using %r", key, value, getattr(defaults, key))
                setattr(self, key, getattr(defaults, key))

    def _load_file(self, config_path: Path, config: "Config") -> None:
        """Load configuration from a YAML or JSON file."""
        try:
            content = config_path.read_text(encoding="utf-8")
            if config_path.suffix in [".yaml", ".yml"]:
                data = yaml.safe_load(content)
            elif config_path.suffix == ".json":
                data = json.loads(content)
            else:
                logger.warning("Skipping config file with unknown format: %s", config_path)
                return
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            logger.warning("Failed to load config file %s: %s", config_path, e)
            return

        if not isinstance(data, dict):
            return

        for key, value in data.items():
            if hasattr(config, key) and value is not None:
                setattr(config, key, value)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "cache_ttl_seconds": self.cache_ttl_seconds,
            "max_workspace_symbols": self.max_workspace_symbols,
            "dataset_limit_per_app": self.dataset_limit_per_app,
            "max_scope_files": self.max_scope_files,
            "heatmap_window_days": self.heatmap_window_days,
            "heatmap_granularity": self.heatmap_granularity,
            "output_format": self.output_format,
            "verbose": self.verbose,
            "log_level": self.log_level,
            "json_logging": self.json_logging,
            "log_file": self.log_file,
        }

    def save(self, path: Path, format: str = "yaml") -> None:
        """
        Save configuration to file.

        Args:
            path: Path to save config file
            format: Format to save as ('yaml' or 'json')
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {k: v for k, v in self.to_dict().items() if v is not None}

        if format == "yaml":
            content = yaml.dump(data, default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(data, indent=2)

        path.write_text(content, encoding="utf-8")
