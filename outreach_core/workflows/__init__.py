"""
Workflow Subsystem.

Dispatch of named workflows to automation backends and convergence on their
asynchronously written results.
"""

from .enum import WorkflowName, WorkflowProvider, ConvergenceState, ResolutionSource
from .spec import WorkflowTrigger, WorkflowOutcome
from .providers import WorkflowProviderConfig, n8n_provider, mindpal_provider
from .dispatcher import WorkflowDispatcher, parse_response_body
from .convergence import ResultConvergence, ResolutionGate

__all__ = [
    "WorkflowName",
    "WorkflowProvider",
    "ConvergenceState",
    "ResolutionSource",
    "WorkflowTrigger",
    "WorkflowOutcome",
    "WorkflowProviderConfig",
    "n8n_provider",
    "mindpal_provider",
    "WorkflowDispatcher",
    "parse_response_body",
    "ResultConvergence",
    "ResolutionGate",
]
