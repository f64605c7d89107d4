"""
Workflow Spec Models.

WorkflowTrigger describes one dispatch; WorkflowOutcome is the uniform result
contract returned by every provider and by result convergence.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class WorkflowTrigger(BaseModel):
    """
    A workflow dispatch request. Created per dispatch and never persisted here.

    Attributes:
        workflow_name: Workflow (or agent) identifier
        payload: JSON body sent to the provider
        created_at: When the trigger was created
    """
    workflow_name: str = Field(min_length=1, description="Workflow identifier")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Request payload")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp",
    )


class WorkflowOutcome(BaseModel):
    """
    Result of a dispatch or of waiting for a workflow result.

    Attributes:
        success: Whether the operation succeeded
        data: Provider response body or stored result record
        task_id: Identifier correlating the dispatch with its result
        estimated_seconds: Provider's (or default) completion estimate
        error: Failure description when success is False

    Example:
        outcome = WorkflowOutcome(success=True, task_id="3f2c...", estimated_seconds=30)
    """
    success: bool = Field(description="Whether the operation succeeded")
    data: Optional[Dict[str, Any]] = Field(default=None, description="Response or result data")
    task_id: Optional[str] = Field(default=None, description="Task identifier")
    estimated_seconds: Optional[float] = Field(default=None, ge=0, description="Estimated completion time")
    error: Optional[str] = Field(default=None, description="Error message")

    @classmethod
    def failure(cls, error: str, task_id: Optional[str] = None) -> "WorkflowOutcome":
        """Build a failure outcome."""
        return cls(success=False, error=error, task_id=task_id)
