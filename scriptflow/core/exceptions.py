"""
ScriptFlow Custom Exceptions

Exception hierarchy used by the generation pipeline, the checkpoint store and
the model clients. Every error carries a human message plus a ``details``
dict that ends up in logs and in ``PipelineResult.metadata``.
"""


class ScriptFlowError(Exception):
    """Root of every error raised by ScriptFlow."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if not self.details:
            return self.message
        return f"{self.message} | Details: {self.details}"


# =============================================================================
# CONFIG
# =============================================================================

class ConfigurationError(ScriptFlowError):
    """Config file or environment is unusable."""
    pass


class MissingConfigError(ConfigurationError):
    """A required setting (usually an API key) is absent."""
    pass


class InvalidConfigError(ConfigurationError):
    """A setting is present but out of range, e.g. a negative quality weight."""
    pass


# =============================================================================
# GENERATION
# =============================================================================

class PipelineError(ScriptFlowError):
    pass


class PipelineStageError(PipelineError):
    """A generation stage (structure, visuals, shots) failed; the checkpoint is kept."""

    def __init__(self, stage_name: str, reason: str):
        super().__init__(
            f"Stage '{stage_name}' failed: {reason}",
            {"stage": stage_name, "reason": reason}
        )
        self.stage_name = stage_name
        self.reason = reason


class StageCancelledError(PipelineError):
    """A stage was abandoned because its run token fired."""

    def __init__(self, stage_name: str = "", reason: str = "cancelled"):
        if stage_name:
            message = f"Stage '{stage_name}' cancelled: {reason}"
        else:
            message = f"Request cancelled: {reason}"
        super().__init__(message, {"stage": stage_name, "reason": reason})
        self.stage_name = stage_name
        self.reason = reason


class CheckpointError(ScriptFlowError):
    """A checkpoint file could not be written or removed."""
    pass


# =============================================================================
# MODEL CALLS
# =============================================================================

class LLMError(ScriptFlowError):
    pass


class LLMProviderError(LLMError):
    """
    The chat endpoint failed: HTTP error status, timeout or dropped connection.

    ``status_code`` is set for HTTP errors and drives retry decisions.
    """

    def __init__(self, provider: str, reason: str, status_code: int = None):
        details = {"provider": provider, "reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(f"LLM provider '{provider}' error: {reason}", details)
        self.provider = provider
        self.status_code = status_code


class LLMResponseError(LLMError):
    """The model answered, but not with the JSON shape that was asked for."""
    pass
