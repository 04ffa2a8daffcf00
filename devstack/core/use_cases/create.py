"""
Create use case — validate input and run the provisioning orchestrator.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devstack.core.errors import ValidationError
from devstack.core.models.project import ProjectRequest
from devstack.core.models.state import FailureReport, ProvisionResult, ProvisionState, StepRecord
from devstack.core.use_cases.wiring import Toolkit

logger = logging.getLogger(__name__)


def create_project(
    toolkit: Toolkit,
    name: str,
    stack: str,
    root_dir: Path | None = None,
    port: int | None = None,
    domain: str | None = None,
    tls: bool = False,
    database: str | None = None,
) -> ProvisionResult:
    """Provision a new project.

    Invalid input never reaches the orchestrator: it comes back as a
    result failed at ``requested`` with nothing mutated.
    """
    root = (root_dir or toolkit.settings.projects_dir).expanduser().resolve()
    try:
        request = ProjectRequest.from_input(
            name=name,
            root_dir=root,
            stack=stack,
            port=port,
            domain=domain or "",
            tls=tls,
            database=database,
        )
    except ValidationError as e:
        logger.error("Invalid request: %s", e)
        return ProvisionResult(
            domain=domain or "",
            state=ProvisionState.FAILED,
            dry_run=toolkit.mode.dry_run,
            steps=[StepRecord(step=ProvisionState.REQUESTED, status="failed", message=str(e))],
            failure=FailureReport(
                step=ProvisionState.REQUESTED,
                error_type=type(e).__name__,
                message=str(e),
            ),
        )

    return toolkit.orchestrator().provision(request)
