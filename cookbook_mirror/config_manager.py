"""
Configuration Manager for loading and managing mirror settings.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, List, Optional
import yaml
from dotenv import load_dotenv

from cookbook_mirror.config_models import CookbookSpec, resolve_url


DEFAULT_COMMIT_MESSAGE = "I modified the project configuration file"
DEBUG_ENV_VAR = "COOKBOOK_MIRROR_DEBUG"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigLoadError(Exception):
    """Raised when the configuration document cannot be read or parsed."""

    def __init__(self, path, cause):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Failed reading configuration from '{self.path}': {cause}")


class MirrorConfig:
    """Mirror configuration loaded from a YAML file and environment variables.

    Only the document itself is checked at load time. Missing fields fall
    back to their defaults when they are read.
    """

    def __init__(self, config_path: str = "config/config.yaml"):
        """Initialize the configuration manager."""
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path)

        # Load environment variables
        load_dotenv()

        self._load_config()

    def _load_config(self):
        """Load main configuration from YAML file."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigLoadError(self.config_path, e) from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ConfigLoadError(
                self.config_path,
                f"expected a mapping at the top level, got {type(config_data).__name__}"
            )

        # Defaults shared by every cookbook
        default_config = self._mapping(config_data, "default")
        self.debug = default_config.get("debug", False) is True
        env_debug = _parse_bool(os.getenv(DEBUG_ENV_VAR))
        if env_debug is not None:
            self.debug = env_debug

        gerrit_config = self._mapping(default_config, "gerrit", "default.")
        self.project_config_overrides = self._mapping(gerrit_config, "project_config", "default.gerrit.")

        git_config = self._mapping(default_config, "git", "default.")
        message_config = self._mapping(git_config, "commit_message", "default.git.")
        self.commit_message_text = message_config.get("text", DEFAULT_COMMIT_MESSAGE)
        self.commit_message_variables = self._mapping(
            message_config, "variables", "default.git.commit_message.")

        # Export configuration
        export_config = self._mapping(config_data, "export")
        self.export_dir = export_config.get("directory", "exports")
        self.export_formats = export_config.get("formats", ["csv", "json"])

        # Logging configuration
        logging_config = self._mapping(config_data, "logging")
        self.log_level = logging_config.get("level", "INFO")
        self.log_file = logging_config.get("file", "logs/cookbook_mirror.log")

        self.cookbooks = [
            CookbookSpec(str(name), data)
            for name, data in self._mapping(config_data, "cookbooks").items()
        ]

        # Store full config for other methods
        self.config = config_data

    @property
    def dry_run(self) -> bool:
        """Whether pushes are simulated, as configured."""
        return self.debug

    def _mapping(self, data: Dict[str, Any], key: str, parent: str = "") -> Dict[str, Any]:
        """Return data[key] as a mapping; a missing or empty value is an empty one."""
        value = data.get(key) or {}
        if not isinstance(value, dict):
            raise ConfigLoadError(
                self.config_path,
                f"expected a mapping for '{parent}{key}', got {type(value).__name__}"
            )
        return value

    def get_cookbooks(self, names: Optional[List[str]] = None) -> List[CookbookSpec]:
        """Return configured cookbooks, optionally limited to the given names."""
        if not names:
            return list(self.cookbooks)

        wanted = set(names)
        unknown = wanted - {cookbook.name for cookbook in self.cookbooks}
        for name in sorted(unknown):
            self.logger.warning(f"Cookbook '{name}' is not configured, ignoring")
        return [cookbook for cookbook in self.cookbooks if cookbook.name in wanted]

    def check_config_warnings(self) -> List[str]:
        """Log (and return) warnings for cookbooks that will not be able to clone."""
        warnings = []
        if not self.cookbooks:
            warnings.append("No cookbooks configured, nothing to mirror")

        for cookbook in self.cookbooks:
            if not cookbook.local_url_template:
                warnings.append(f"Cookbook '{cookbook.name}' has no local_url")
            if not cookbook.source_url_template:
                warnings.append(f"Cookbook '{cookbook.name}' has no source_url")
            for template in (cookbook.local_url_template, cookbook.source_url_template):
                try:
                    resolve_url(template, cookbook.name)
                except ValueError as e:
                    warnings.append(str(e))

        for warning in warnings:
            self.logger.warning(f"Configuration warning: {warning}")
        return warnings

    def create_example_config(self, force: bool = False) -> Path:
        """Create an example configuration file next to the configured one."""
        return create_example_config(self.config_path, force=force)

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration."""
        return {
            "config_path": str(self.config_path),
            "debug": self.debug,
            "project_config_sections": list(self.project_config_overrides),
            "commit_message_text": self.commit_message_text,
            "commit_message_variables": sorted(self.commit_message_variables),
            "cookbooks": [
                {
                    "name": cookbook.name,
                    "local_url": _summary_url(cookbook.local_url_template, cookbook.name),
                    "source_url": _summary_url(cookbook.source_url_template, cookbook.name),
                }
                for cookbook in self.cookbooks
            ],
            "export_dir": self.export_dir,
            "export_formats": self.export_formats,
            "log_level": self.log_level,
            "log_file": self.log_file,
        }


def _summary_url(template: str, name: str) -> str:
    try:
        return resolve_url(template, name)
    except ValueError:
        return f"{template} (invalid template)"


def load_config(config_path) -> MirrorConfig:
    """Load the mirror configuration from a YAML file."""
    return MirrorConfig(config_path)


def create_example_config(config_path, force: bool = False) -> Path:
    """Write config.example.yaml next to config_path.

    The configuration file itself does not need to exist yet.
    """
    config_dir = Path(config_path).parent
    config_dir.mkdir(parents=True, exist_ok=True)

    example_path = config_dir / "config.example.yaml"
    if not example_path.exists() or force:
        write_example_config(example_path)
        logging.getLogger(__name__).info(f"Created example config: {example_path}")
    return example_path


def write_example_config(path) -> None:
    """Write an example configuration document to the given path."""
    example_config = {
        "default": {
            "debug": True,
            "gerrit": {
                "project_config": {
                    'access "refs/heads/*"': {
                        "submit-type": "MERGE_IF_NECESSARY",
                    },
                },
            },
            "git": {
                "commit_message": {
                    "text": "Update project configuration for ${team}",
                    "variables": {"team": "platform"},
                },
            },
        },
        "cookbooks": {
            "apache": {
                "local_url": "ssh://gerrit.example.com:29418/cookbooks/%s",
                "source_url": "https://github.com/chef-cookbooks/%s.git",
            },
        },
        "export": {
            "directory": "exports",
            "formats": ["csv", "json"],
        },
        "logging": {
            "level": "INFO",
            "file": "logs/cookbook_mirror.log",
        },
    }

    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(example_config, f, default_flow_style=False, sort_keys=False)


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None
