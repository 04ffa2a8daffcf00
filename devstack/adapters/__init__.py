"""Adapters — the only code that touches the operating system.

Public re-exports for convenient access.
"""

from devstack.adapters.base import Adapter, ExecutionContext
from devstack.adapters.mock import MockAdapter
from devstack.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
