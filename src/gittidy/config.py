#!/usr/bin/env python3
"""
config - Configuration management for gittidy.

Handles user preferences like the remote name, protected branches,
which code-review backend to query, and where to look for repositories.
"""

import json
from pathlib import Path
from typing import Dict, Any, Optional


LIST_KEYS = ("protected_branches",)
REVIEW_BACKENDS = ("auto", "gh", "api", "none")


def get_config_dir() -> Path:
    """Get the gittidy configuration directory."""
    config_dir = Path.home() / ".gittidy"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    """Get the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_default_search_path() -> Path:
    """Get the default directory scanned by cleanup-all and update-main."""
    return Path.home() / "work"


def default_config() -> Dict[str, Any]:
    return {
        "remote": "origin",
        "protected_branches": ["main", "master"],
        "github_author": "@me",
        "review_backend": "auto",
        "github_api_url": "https://api.github.com",
        "search_path": str(get_default_search_path()),
        "main_branch": "main",
        "log_dir": None,
    }


def load_config() -> Dict[str, Any]:
    """Load configuration from file, filling in defaults for missing keys."""
    config = default_config()
    config_file = get_config_file()

    if not config_file.exists():
        return config

    try:
        with open(config_file, 'r') as f:
            stored = json.load(f)
    except (OSError, json.JSONDecodeError):
        # Return defaults on error
        return config

    if isinstance(stored, dict):
        config.update(stored)
    return config


def save_config(config: Dict[str, Any]):
    """Save configuration to file."""
    config_file = get_config_file()

    try:
        with open(config_file, 'w') as f:
            json.dump(config, f, indent=2)
    except OSError as e:
        print(f"Error saving configuration: {e}")


def parse_value(key: str, raw: str) -> Any:
    """Convert a command-line string into the type stored for ``key``."""
    if key in LIST_KEYS:
        return [item.strip() for item in raw.split(",") if item.strip()]
    if key == "review_backend" and raw not in REVIEW_BACKENDS:
        raise ValueError(f"review_backend must be one of: {', '.join(REVIEW_BACKENDS)}")
    if key == "log_dir" and raw.lower() in ("", "none", "null"):
        return None
    return raw


def set_value(key: str, raw: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Set a single configuration key and persist it."""
    if key not in default_config():
        raise KeyError(f"Unknown setting: {key}")
    if config is None:
        config = load_config()
    config[key] = parse_value(key, raw)
    save_config(config)
    print(f"{key} set to: {config[key]}")
    return config


def show_config():
    """Display current configuration."""
    config = load_config()

    print("\n" + "=" * 60)
    print("GITTIDY CONFIGURATION")
    print("=" * 60)
    print(f"Config file: {get_config_file()}")
    print()
    print("Settings:")
    print(f"  Remote:             {config['remote']}")
    print(f"  Protected branches: {', '.join(config['protected_branches']) or '(none)'}")
    print(f"  GitHub author:      {config['github_author']}")
    print(f"  Review backend:     {config['review_backend']}")
    print(f"  GitHub API URL:     {config['github_api_url']}")
    print(f"  Search path:        {config['search_path']}")
    print(f"  Main branch:        {config['main_branch']}")
    print(f"  Log directory:      {config['log_dir'] or '(auto: /var/log or /tmp)'}")
    print()
    print("To modify settings:")
    print("  gittidy config --set protected_branches main,master,develop")
    print(f"  Or edit: {get_config_file()}")
    print()
