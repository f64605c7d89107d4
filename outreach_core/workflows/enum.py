"""
Enumerations for the Workflow Subsystem.
"""

from enum import Enum

from outreach_core.constants import PROVIDER_MINDPAL, PROVIDER_N8N


class WorkflowProvider(str, Enum):
    """Automation backends a workflow can be dispatched to."""
    N8N = PROVIDER_N8N
    MINDPAL = PROVIDER_MINDPAL


class WorkflowName(str, Enum):
    """
    Known workflow names.

    Dispatch accepts any string; these are the workflows the platform ships.
    """
    COMPANY_RESEARCH = "company-research"
    DOCUMENT_ANALYSIS = "analyze-document"
    ICP_ENRICHMENT = "enrich-icp"
    LEAD_SOURCING = "source-leads"


class ConvergenceState(str, Enum):
    """
    State of a single await_result() call.

    PENDING moves to exactly one terminal state.
    """
    PENDING = "pending"
    RESOLVED = "resolved"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class ResolutionSource(str, Enum):
    """Which path resolved a convergence call."""
    IMMEDIATE = "immediate"
    POLL = "poll"
    SUBSCRIPTION = "subscription"
    TIMEOUT = "timeout"
