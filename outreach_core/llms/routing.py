"""
Task-to-Model Routing.

Maps a TaskType to the model that serves it. Unknown task types resolve to the
fallback model instead of failing.
"""

from typing import Dict, Mapping, Optional, Union

from .enum import TaskType


DEFAULT_MODEL_ROUTING: Dict[TaskType, str] = {
    TaskType.COMPANY_RESEARCH: "anthropic/claude-3.5-sonnet",
    TaskType.ICP_CONVERSATION: "openai/gpt-4-turbo",
    TaskType.DOCUMENT_ANALYSIS: "anthropic/claude-3.5-sonnet",
    TaskType.QUICK_RESPONSE: "openai/gpt-4o-mini",
    TaskType.SYNTHESIS: "anthropic/claude-3.5-sonnet",
    TaskType.DATA_EXTRACTION: "openai/gpt-4-turbo",
}

FALLBACK_MODEL = DEFAULT_MODEL_ROUTING[TaskType.QUICK_RESPONSE]


class ModelRouter:
    """
    Pure lookup from task type to model id.

    The routing table is copied at construction and never mutated, so
    select_model() is deterministic for a given router.
    """

    def __init__(
        self,
        routing: Optional[Mapping[TaskType, str]] = None,
        fallback: str = FALLBACK_MODEL,
    ):
        table = dict(DEFAULT_MODEL_ROUTING)
        if routing:
            table.update({TaskType(task): model for task, model in routing.items()})
        if not fallback or any(not model for model in table.values()):
            raise ValueError("Model identifiers must be non-empty")
        self._routing = table
        self.fallback = fallback

    @property
    def routing(self) -> Dict[TaskType, str]:
        return dict(self._routing)

    def select_model(self, task_type: Union[TaskType, str, None]) -> str:
        try:
            return self._routing.get(TaskType(task_type), self.fallback)
        except ValueError:
            return self.fallback
