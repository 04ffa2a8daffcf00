"""Provisioning orchestration."""

from devstack.core.orchestrator.provisioner import ProvisioningOrchestrator

__all__ = ["ProvisioningOrchestrator"]
