"""Composable async pipelines.

This package provides a pipeline abstraction where:
- Each Stage transforms the current value into the next one
- Pipelines are immutable; builder calls return new pipelines sharing stages
- Steps can be retried, bounded by a timeout, validated, branched or fanned out
- ContextPipeline threads a value plus metadata through effect/transform steps
- Async execution is supported throughout
"""

import logging

from .base import Stage
from .chain import StepChain
from .config import PipelineConfig, configure_logging, get_config, set_config
from .context import ContextKey, PipelineContext
from .context_pipeline import ContextPipeline
from .errors import (
    PipelineConfigError,
    PipelineError,
    RetryExhaustedError,
    StepTimeoutError,
    TypeMismatchError,
    ValidationError,
)
from .hooks import StepHooks
from .pipeline import Pipeline

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Pipeline",
    "ContextPipeline",
    "PipelineContext",
    "ContextKey",
    "Stage",
    "StepChain",
    "StepHooks",
    "PipelineConfig",
    "get_config",
    "set_config",
    "configure_logging",
    "PipelineError",
    "PipelineConfigError",
    "ValidationError",
    "StepTimeoutError",
    "RetryExhaustedError",
    "TypeMismatchError",
]
