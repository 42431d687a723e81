"""Configuration loading utilities."""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv


@dataclass
class OrgConfig:
    """Organization configuration loaded from config/organization.json.

    All org-specific data lives here rather than in code, so
    customization requires only editing the JSON file.
    """

    company_name: str
    cosmos_database: str = ""
    timezone: str = "UTC"
    operations_keyword: str = "operations"
    default_page_size: int = 10
    max_page_size: int = 100


def get_project_root() -> Path:
    """Get the project root directory."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError("Could not find project root (no pyproject.toml found)")


def load_org_config() -> OrgConfig:
    """Load organization configuration from config file.

    ``DISPATCHDESK_CONFIG`` may point at an alternate JSON file.

    Returns:
        OrgConfig populated from the JSON file

    Raises:
        FileNotFoundError: If the config file does not exist
    """
    load_dotenv()

    override = os.getenv("DISPATCHDESK_CONFIG")
    default_path = get_project_root() / "config" / "organization.json"
    config_path = Path(override) if override else default_path

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        config_data = json.load(f)

    return OrgConfig(
        company_name=config_data["company_name"],
        cosmos_database=config_data.get("cosmos_database", ""),
        timezone=config_data.get("timezone", "UTC"),
        operations_keyword=config_data.get("operations_keyword", "operations").lower(),
        default_page_size=int(config_data.get("default_page_size", 10)),
        max_page_size=int(config_data.get("max_page_size", 100)),
    )


# Cached config instance
_org_config: OrgConfig | None = None


def get_org_config() -> OrgConfig:
    """Get cached organization config.

    Loads config once and caches it for subsequent calls.
    """
    global _org_config
    if _org_config is None:
        _org_config = load_org_config()
    return _org_config


def get_cosmos_database() -> str:
    """Get Cosmos DB database name.

    Reads from ``COSMOS_DATABASE`` env var first (for Container Apps),
    falls back to ``organization.json``.
    """
    return os.getenv("COSMOS_DATABASE") or get_org_config().cosmos_database


def get_timezone() -> ZoneInfo:
    """Get organization timezone as a ZoneInfo object."""
    return ZoneInfo(get_org_config().timezone)
