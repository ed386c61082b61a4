"""Pipeline variant threading a PipelineContext through its steps."""

import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from .base import Stage, call_step
from .chain import StepChain
from .context import PipelineContext
from .hooks import NO_HOOKS, StepHooks

logger = logging.getLogger(__name__)

T = TypeVar("T")

ContextAction = Callable[[PipelineContext[T]], Union[Awaitable[Any], Any]]
ContextTransform = Callable[[PipelineContext[T]], Union[Awaitable[T], T]]


class EffectStage(Stage):
    """Runs an action for its side effects; the context passes on unchanged."""

    def __init__(self, action: ContextAction, name: str):
        self.action = action
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, context: PipelineContext, hooks: StepHooks) -> PipelineContext:
        await call_step(self.action, context)
        return context


class TransformStage(Stage):
    """Replaces the context value with the transform's result."""

    def __init__(self, transform: ContextTransform, name: str):
        self.transform = transform
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, context: PipelineContext, hooks: StepHooks) -> PipelineContext:
        context.value = await call_step(self.transform, context)
        return context


class ContextPipeline(Generic[T]):
    """
    Chain of effect and transform steps over a value plus metadata.

    Each execution wraps its input in a fresh PipelineContext, so metadata
    never leaks between runs. Like Pipeline, builder methods return new
    instances and never mutate the receiver.

    Example:
        pipeline = (
            ContextPipeline.start()
            .step(lambda ctx: ctx.set("tag", "run-1"))
            .transform(lambda ctx: ctx.value + 10)
        )
        result = await pipeline.execute(5)  # 15
    """

    def __init__(self, stages: Optional[StepChain[Stage]] = None):
        self._chain: StepChain[Stage] = stages if stages is not None else StepChain()

    @classmethod
    def start(cls) -> "ContextPipeline[Any]":
        return cls()

    def step(self, action: ContextAction, name: Optional[str] = None) -> "ContextPipeline[T]":
        """Append an effect-only step; its return value is ignored."""
        stage = EffectStage(action, name or f"Step{len(self._chain) + 1}")
        return ContextPipeline(self._chain.append(stage))

    def transform(self, transform: ContextTransform, name: Optional[str] = None) -> "ContextPipeline[T]":
        """Append a step whose result becomes the context's new value."""
        stage = TransformStage(transform, name or f"Step{len(self._chain) + 1}")
        return ContextPipeline(self._chain.append(stage))

    async def execute(self, value: T) -> T:
        """Run all steps on a fresh context wrapping value and return the final value."""
        context: PipelineContext[T] = PipelineContext(value)
        for stage in self._chain:
            logger.debug(f"Running context stage '{stage.name}'")
            context = await stage.execute(context, NO_HOOKS)
        return context.value

    def __len__(self) -> int:
        return len(self._chain)

    def __repr__(self) -> str:
        stage_names = [s.name for s in self._chain]
        return f"ContextPipeline(stages={stage_names})"
