"""
Platform-wide exception hierarchy.

Services raise these types; the alert engine decides per type whether a
failure skips a single alert, abandons a workflow for the current cycle,
or propagates.

Usage:
    from buildtrack.core.exceptions import NotFoundError, RecipientResolutionError

    raise NotFoundError(resource="WorkflowInstance", resource_id=42)
    raise RecipientResolutionError(step_id=7, role="OFFICE")
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "WorkflowInstance").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class RecipientResolutionError(Exception):
    """Raised when no active user can receive an alert after every fallback.

    This is a configuration gap (no ADMIN/MANAGER exists at all), not a
    transient fault: the engine logs it and does not retry.
    """

    def __init__(self, step_id: int | None, role: str | None, category: str | None = None) -> None:
        self.step_id = step_id
        self.role = role
        self.category = category
        super().__init__(
            f"No eligible recipient for step id={step_id} role={role} category={category}"
        )


class WorkflowCheckTimeout(Exception):
    """Raised when a single workflow check exceeds its time budget.

    The workflow is abandoned for the current cycle and picked up again on
    the next scheduled sweep.
    """

    def __init__(self, workflow_id: int, budget_seconds: float) -> None:
        self.workflow_id = workflow_id
        self.budget_seconds = budget_seconds
        super().__init__(f"Workflow {workflow_id} check exceeded {budget_seconds}s budget")
