"""Errors raised by the LLM layer."""


class LLMError(Exception):
    """Base exception for LLM call errors."""
    pass


class EmptyResponseError(LLMError):
    """Raised when the model returns no text. Callers treat it as retryable."""
    pass


class LLMConfigurationError(LLMError):
    """Raised when no usable LLM configuration is found."""
    pass
