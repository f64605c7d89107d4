"""
Workflow Provider Configurations.

Automation backends differ only in how the request is addressed and
authenticated and in where the task id lives in the response. Each backend is
therefore described by a WorkflowProviderConfig value instead of a subclass.

    n8n      POST {base_url}/{workflow_name}               X-N8N-API-KEY: <key>  (optional)
    MindPal  POST https://api.mindpal.io/v1/agents/{id}/trigger   Authorization: Bearer <key>
"""

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from outreach_core import constants
from .enum import WorkflowProvider


class WorkflowProviderConfig(BaseModel):
    """
    Addressing, auth and response-shape description of one provider.

    Attributes:
        provider: Provider identifier
        display_name: Name used in error messages
        url_template: Format string with ``{base_url}`` and ``{workflow_name}``
        base_url: Base URL substituted into the template
        api_key: Credential placed in ``auth_header``
        auth_header: Header carrying the credential
        auth_scheme: Prefix prepended to the credential (e.g. ``"Bearer "``)
        required_setting: Field that must be non-empty before dispatching
        missing_message: Error reported when ``required_setting`` is empty
        task_id_fields: Response fields probed, in order, for the task id
        default_estimated_seconds: Estimate used when the response has none
    """

    provider: WorkflowProvider
    display_name: str
    url_template: str
    base_url: str = ""
    api_key: Optional[str] = None
    auth_header: Optional[str] = None
    auth_scheme: str = ""
    required_setting: str = Field(pattern="^(base_url|api_key)$")
    missing_message: str
    task_id_fields: Tuple[str, ...] = ()
    default_estimated_seconds: float = Field(ge=0)

    model_config = {"frozen": True}

    def missing_setting(self) -> Optional[str]:
        """Name of the required setting when it is not configured, else None."""
        value = getattr(self, self.required_setting)
        if value is None or not str(value).strip():
            return self.required_setting
        return None

    def build_url(self, workflow_name: str) -> str:
        return self.url_template.format(
            base_url=self.base_url.rstrip("/"),
            workflow_name=workflow_name,
        )

    def build_headers(self) -> Dict[str, str]:
        headers = {constants.HEADER_CONTENT_TYPE: constants.CONTENT_TYPE_JSON}
        if self.auth_header and self.api_key:
            headers[self.auth_header] = f"{self.auth_scheme}{self.api_key}"
        return headers

    def extract_task_id(self, body: Dict[str, Any]) -> Optional[str]:
        """First non-empty task id field of the response body."""
        for field_name in self.task_id_fields:
            value = body.get(field_name)
            if value not in (None, ""):
                return str(value)
        return None

    def extract_estimate(self, body: Dict[str, Any]) -> float:
        """Completion estimate from the response body, or the provider default."""
        for field_name in constants.ESTIMATE_FIELDS:
            value = body.get(field_name)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
                return float(value)
        return self.default_estimated_seconds


def n8n_provider(base_url: str, api_key: Optional[str] = None) -> WorkflowProviderConfig:
    """n8n webhook provider. The base URL is required, the API key is optional."""
    return WorkflowProviderConfig(
        provider=WorkflowProvider.N8N,
        display_name="n8n",
        url_template="{base_url}/{workflow_name}",
        base_url=base_url or "",
        api_key=api_key,
        auth_header=constants.HEADER_N8N_API_KEY,
        required_setting="base_url",
        missing_message="Configuration error: n8n webhook URL missing",
        task_id_fields=("webhookId", "taskId", "task_id"),
        default_estimated_seconds=constants.N8N_DEFAULT_ESTIMATED_SECONDS,
    )


def mindpal_provider(
    api_key: Optional[str],
    url_template: str = constants.MINDPAL_URL_TEMPLATE,
) -> WorkflowProviderConfig:
    """MindPal agent provider. The API key is required."""
    return WorkflowProviderConfig(
        provider=WorkflowProvider.MINDPAL,
        display_name="MindPal",
        url_template=url_template,
        api_key=api_key,
        auth_header=constants.HEADER_AUTHORIZATION,
        auth_scheme=constants.BEARER_PREFIX,
        required_setting="api_key",
        missing_message="Configuration error: MindPal API key missing",
        task_id_fields=("executionId", "id"),
        default_estimated_seconds=constants.MINDPAL_DEFAULT_ESTIMATED_SECONDS,
    )
