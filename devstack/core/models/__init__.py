"""
Domain models — Pydantic types for devstack.

All models are re-exported here for convenient access:

    from devstack.core.models import ProjectRequest, ManagedResource, Action, Receipt
"""

from devstack.core.models.action import Action, Receipt
from devstack.core.models.certificate import CertificateBundle
from devstack.core.models.database import DbCredential, DbEngine
from devstack.core.models.mode import ExecutionMode
from devstack.core.models.project import ProjectRequest, StackKind, StackSpec
from devstack.core.models.resource import ManagedResource, ResourceKind
from devstack.core.models.state import (
    FailureReport,
    ProvisionResult,
    ProvisionState,
    StepRecord,
)
from devstack.core.models.vhost import VhostDescriptor, WebServer

__all__ = [
    "Action",
    "CertificateBundle",
    "DbCredential",
    "DbEngine",
    "ExecutionMode",
    "FailureReport",
    "ManagedResource",
    "ProjectRequest",
    "ProvisionResult",
    "ProvisionState",
    "Receipt",
    "ResourceKind",
    "StackKind",
    "StackSpec",
    "StepRecord",
    "VhostDescriptor",
    "WebServer",
]
