"""
Speech Recognition Spec Models.
"""

from dataclasses import dataclass, field
from typing import List

from outreach_core.constants import DEFAULT_SPEECH_LANGUAGE


@dataclass
class RecognitionConfig:
    """Backend configuration applied by the speech service."""
    continuous: bool = True
    interim_results: bool = True
    lang: str = DEFAULT_SPEECH_LANGUAGE


@dataclass
class RecognitionAlternative:
    transcript: str
    confidence: float = 1.0


@dataclass
class RecognitionResult:
    """One recognized segment; alternatives are ordered best first."""
    alternatives: List[RecognitionAlternative] = field(default_factory=list)
    is_final: bool = False


@dataclass
class RecognitionEvent:
    """
    A batch of results delivered by a backend.

    Results before ``result_index`` were delivered by earlier events and have
    not changed.
    """
    results: List[RecognitionResult] = field(default_factory=list)
    result_index: int = 0
