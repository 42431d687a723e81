"""Core utilities shared by the dispatch modules."""

from dispatchdesk.core.config import OrgConfig, get_org_config, load_org_config
from dispatchdesk.core.models import CosmosDocument
from dispatchdesk.core.store import CosmosStore

__all__ = [
    "CosmosDocument",
    "CosmosStore",
    "OrgConfig",
    "get_org_config",
    "load_org_config",
]
