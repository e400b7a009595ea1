"""
Configuration loading utilities for CROSSARB.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from core.exceptions import ConfigError


CONFIG_DIR = Path(__file__).parent
DEFAULT_AGENT_CONFIG = CONFIG_DIR / "agent.yaml"


def load_yaml(path: Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: File path; relative names are resolved in the config directory

    Returns:
        Parsed YAML as dict

    Raises:
        FileNotFoundError: file missing
        ConfigError: file is not valid YAML
    """
    filepath = path if path.is_absolute() or path.exists() else CONFIG_DIR / path
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file {filepath} is not valid YAML: {e}") from e


def load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load secrets from .env into the process environment (existing vars win)."""
    load_dotenv(dotenv_path=dotenv_path, override=False)


def get_secret(name: str, default: str = "") -> str:
    """Read a secret from the environment."""
    return os.getenv(name, default).strip()
