"""
LLM Orchestration Module for the LeadFlow qualification engine.

This module handles:
- Completion provider abstraction (OpenAI, Google Gemini, Anthropic Claude via Bedrock)
- Provider failover with a sticky current provider
- Prompt template management
"""

from .exceptions import AllProvidersExhausted, ProviderCallFailed, ProviderConfigurationError
from .orchestrator import CompletionProvider, ProviderOrchestrator, is_retryable_error
from .prompt_templates import PromptTemplates, PromptType

__all__ = [
    "AllProvidersExhausted",
    "ProviderCallFailed",
    "ProviderConfigurationError",
    "CompletionProvider",
    "ProviderOrchestrator",
    "is_retryable_error",
    "PromptTemplates",
    "PromptType",
]
