"""
Enumerations for the LLM Subsystem.
"""

from enum import Enum


class TaskType(str, Enum):
    """Semantic category of a chat request, used to select a model."""
    COMPANY_RESEARCH = "company_research"
    ICP_CONVERSATION = "icp_conversation"
    DOCUMENT_ANALYSIS = "document_analysis"
    QUICK_RESPONSE = "quick_response"
    SYNTHESIS = "synthesis"
    DATA_EXTRACTION = "data_extraction"


class MessageRole(str, Enum):
    """Conversation message roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
