"""Stack generators and the dispatcher that selects them."""

from devstack.core.services.scaffolders.base import Requirement, ScaffoldResult, Scaffolder
from devstack.core.services.scaffolders.dispatcher import DEFAULT_SCAFFOLDERS, ScaffoldDispatcher

__all__ = [
    "DEFAULT_SCAFFOLDERS",
    "Requirement",
    "ScaffoldDispatcher",
    "ScaffoldResult",
    "Scaffolder",
]
