"""
Workflow Dispatcher.

Triggers named workflows on an automation backend and returns a uniform
WorkflowOutcome. The dispatcher never raises for expected failures:

- missing configuration -> failure outcome, no network call
- terminal non-2xx response -> failure outcome with status and reason
- retries exhausted -> failure outcome with the transport's last error

Usage:
    dispatcher = WorkflowDispatcher(
        providers=[n8n_provider(settings.n8n_base_url), mindpal_provider(settings.mindpal_api_key)],
        transport=RetryableTransport(),
    )
    outcome = await dispatcher.trigger(WorkflowName.COMPANY_RESEARCH, {"company": "Acme"})
    if outcome.success:
        result = await convergence.await_result(outcome.task_id)
"""

import uuid
from typing import Any, Callable, Dict, Iterable, Optional, Union

from outreach_core.constants import LOGGER_DISPATCHER
from outreach_core.exceptions import ConfigurationMissingError, TransportExhaustedError
from outreach_core.transport import RetryableTransport, RetryPolicy, TransportResponse
from outreach_core.utils.logging.LoggerAdaptor import LoggerAdaptor
from .enum import WorkflowName, WorkflowProvider
from .providers import WorkflowProviderConfig
from .spec import WorkflowOutcome, WorkflowTrigger


def parse_response_body(response: TransportResponse) -> Dict[str, Any]:
    """
    Response body as a mapping.

    Empty or invalid JSON yields ``{}``; a JSON value that is not an object is
    wrapped as ``{"response": value}``.
    """
    if not response.body.strip():
        return {}
    try:
        parsed = response.json()
    except ValueError:
        return {}
    if isinstance(parsed, dict):
        return parsed
    return {"response": parsed}


class WorkflowDispatcher:
    """
    Dispatches workflow triggers to configured providers.

    Attributes:
        providers: Provider configurations keyed by provider
        transport: Transport used for every trigger request
        policy: Retry policy applied to trigger requests
    """

    def __init__(
        self,
        providers: Iterable[WorkflowProviderConfig],
        transport: RetryableTransport,
        policy: Optional[RetryPolicy] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.providers: Dict[WorkflowProvider, WorkflowProviderConfig] = {
            config.provider: config for config in providers
        }
        self.transport = transport
        self.policy = policy
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.logger = LoggerAdaptor.get_logger(LOGGER_DISPATCHER)

    def _resolve_provider(self, provider: WorkflowProvider) -> WorkflowProviderConfig:
        config = self.providers.get(WorkflowProvider(provider))
        if config is None:
            raise ConfigurationMissingError(
                f"Configuration error: no {WorkflowProvider(provider).value} provider configured",
                setting="provider",
            )
        missing = config.missing_setting()
        if missing:
            raise ConfigurationMissingError(config.missing_message, setting=missing)
        return config

    async def trigger(
        self,
        workflow_name: Union[str, WorkflowName],
        payload: Optional[Dict[str, Any]] = None,
        provider: WorkflowProvider = WorkflowProvider.N8N,
    ) -> WorkflowOutcome:
        """
        Trigger a workflow.

        Args:
            workflow_name: Workflow name (n8n) or agent id (MindPal)
            payload: JSON body for the provider
            provider: Backend to dispatch to

        Returns:
            WorkflowOutcome; ``task_id`` and ``estimated_seconds`` are set on success
        """
        name = workflow_name.value if isinstance(workflow_name, WorkflowName) else str(workflow_name)
        trigger = WorkflowTrigger(workflow_name=name, payload=payload or {})

        try:
            config = self._resolve_provider(provider)
        except ConfigurationMissingError as e:
            self.logger.error(
                "Workflow dispatch not configured",
                workflow=name,
                provider=WorkflowProvider(provider).value,
                setting=e.setting,
            )
            return WorkflowOutcome.failure(e.message)

        url = config.build_url(trigger.workflow_name)
        self.logger.info("Triggering workflow", workflow=name, provider=config.provider.value)

        try:
            response = await self.transport.execute(
                url,
                method="POST",
                headers=config.build_headers(),
                payload=trigger.payload,
                policy=self.policy,
            )
        except TransportExhaustedError as e:
            self.logger.error(
                "Workflow dispatch failed",
                workflow=name,
                provider=config.provider.value,
                attempts=e.attempts,
                error=e.last_error,
            )
            return WorkflowOutcome.failure(f"{config.display_name} request failed: {e.message}")

        if not response.ok:
            error = f"{config.display_name} request failed: {response.status} {response.reason}".strip()
            self.logger.warning(
                "Workflow dispatch rejected",
                workflow=name,
                provider=config.provider.value,
                status=response.status,
            )
            return WorkflowOutcome.failure(error)

        body = parse_response_body(response)
        outcome = WorkflowOutcome(
            success=True,
            data=body,
            task_id=config.extract_task_id(body) or self._id_factory(),
            estimated_seconds=config.extract_estimate(body),
        )
        self.logger.info(
            "Workflow triggered",
            workflow=name,
            provider=config.provider.value,
            task_id=outcome.task_id,
            estimated_seconds=outcome.estimated_seconds,
            attempts=response.attempts,
        )
        return outcome

    async def trigger_alternate(self, agent_id: str, payload: Optional[Dict[str, Any]] = None) -> WorkflowOutcome:
        """Trigger a MindPal agent."""
        return await self.trigger(agent_id, payload, provider=WorkflowProvider.MINDPAL)
