"""Error hierarchy raised by the pipeline engines."""

from typing import Any, Optional


def _type_name(tp: Any) -> str:
    if isinstance(tp, tuple):
        return " | ".join(_type_name(t) for t in tp)
    return getattr(tp, "__name__", repr(tp))


class PipelineError(Exception):
    """Base class for all errors raised by the engine itself.

    Errors raised by user step callables are never wrapped in this type,
    except on retry exhaustion (see :class:`RetryExhaustedError`).
    """


class PipelineConfigError(PipelineError, ValueError):
    """Raised at build time when a stage is configured with invalid arguments."""


class ValidationError(PipelineError, ValueError):
    """Raised by a validate stage when its predicate rejects the current value."""

    def __init__(self, message: str = "Validation failed.", value: Any = None):
        super().__init__(message)
        self.message = message
        self.value = value


class StepTimeoutError(PipelineError, TimeoutError):
    """Raised when a timeout stage does not settle within its time budget."""

    def __init__(self, step_name: str, timeout: float):
        super().__init__(
            f"Step '{step_name}' exceeded timeout of {timeout} seconds."
        )
        self.step_name = step_name
        self.timeout = timeout


class RetryExhaustedError(PipelineError):
    """Raised when every attempt of a retry stage failed.

    The last underlying error is available both as ``last_error`` and as
    ``__cause__``.
    """

    def __init__(
        self,
        step_name: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ):
        super().__init__(f"Step '{step_name}' failed after {attempts} attempts.")
        self.step_name = step_name
        self.attempts = attempts
        self.last_error = last_error


class TypeMismatchError(PipelineError, TypeError):
    """Raised when a metadata payload is not of the requested type."""

    def __init__(self, key: str, expected_type: Any, actual_type: type):
        super().__init__(
            f"Metadata '{key}' holds {_type_name(actual_type)}, "
            f"expected {_type_name(expected_type)}"
        )
        self.key = key
        self.expected_type = expected_type
        self.actual_type = actual_type
