"""Service components"""

from .generation_client import (
    GenerationClient,
    GenerationError,
    GenerationRequestError,
    GenerationResponse,
    GenerationUnavailableError,
)
from .health_orchestrator import HealthAnalysis, HealthOrchestrator
from .logic_assistant import LogicAssistant

__all__ = [
    'GenerationClient',
    'GenerationError',
    'GenerationRequestError',
    'GenerationResponse',
    'GenerationUnavailableError',
    'HealthAnalysis',
    'HealthOrchestrator',
    'LogicAssistant',
]
