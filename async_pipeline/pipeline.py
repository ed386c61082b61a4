"""Fluent async pipeline builder and executor."""

import logging
from typing import (
    Any,
    Callable,
    Generic,
    Iterable,
    Optional,
    Tuple,
    TypeVar,
    Union,
)

from .base import Stage, StepFunc
from .chain import StepChain
from .config import get_config
from .errors import PipelineConfigError
from .hooks import ErrorHook, StartHook, StepHooks, SuccessHook
from .stages import (
    BranchStage,
    ParallelStage,
    PlainStage,
    RetryStage,
    TimeoutStage,
    ValidateStage,
)

logger = logging.getLogger(__name__)

TIn = TypeVar("TIn")
TOut = TypeVar("TOut")
TNext = TypeVar("TNext")
T1 = TypeVar("T1")
T2 = TypeVar("T2")

# Marks an omitted argument whose default comes from the config
_UNSET: Any = object()


class Pipeline(Generic[TIn, TOut]):
    """
    Chain of stages with sequential async execution.

    Immutable: every builder method returns a new pipeline and leaves the
    original unchanged. Pipelines built from a common prefix share its
    stages without copying them.

    Example:
        pipeline = (
            Pipeline.start()
            .step(double, "Double")
            .validate(lambda x: x > 10, "Too small")
            .step_with_retry(call_service, retry_count=5, retry_delay=0.5)
        )
        result = await pipeline.execute(6)
    """

    def __init__(
        self,
        stages: Union[StepChain[Stage], Iterable[Stage], None] = None,
        hooks: Optional[StepHooks] = None,
    ):
        if isinstance(stages, StepChain):
            chain = stages
        else:
            chain = StepChain()
            for stage in stages or []:
                chain = chain.append(stage)

        self._chain: StepChain[Stage] = chain
        self._hooks = hooks or StepHooks()

    @classmethod
    def start(cls) -> "Pipeline[Any, Any]":
        """Return an empty pipeline; its output is its input."""
        return cls()

    # ------------------------------------------------------------------
    # Builder methods
    # ------------------------------------------------------------------

    def with_stage(self, stage: Stage) -> "Pipeline[TIn, Any]":
        """
        Return new pipeline with stage appended.

        Creates a new pipeline, leaves the original unchanged.
        """
        return Pipeline(self._chain.append(stage), self._hooks)

    def step(
        self, func: StepFunc[TOut, TNext], name: Optional[str] = None
    ) -> "Pipeline[TIn, TNext]":
        """
        Append a plain step.

        Plain steps are the only stages that fire the start, success and
        error hooks.

        Args:
            func: Callable receiving the current value, sync or async
            name: Display name reported to hooks (default: ``Step<N>``)
        """
        return self.with_stage(PlainStage(func, name or self._default_name()))

    def step_with_retry(
        self,
        func: StepFunc[TOut, TNext],
        retry_count: Optional[int] = None,
        retry_delay: Optional[float] = _UNSET,
        name: Optional[str] = None,
    ) -> "Pipeline[TIn, TNext]":
        """
        Append a step that is attempted up to ``retry_count`` times.

        Args:
            func: Callable receiving the current value, sync or async
            retry_count: Maximum number of attempts (default from config: 3)
            retry_delay: Seconds to wait between attempts. Omit to use the
                config default; pass None for no delay
            name: Display name used in errors and logs

        Raises:
            PipelineConfigError: If retry_count < 1 or retry_delay < 0
        """
        config = get_config()
        count = retry_count if retry_count is not None else config.retry_count
        delay = config.retry_delay if retry_delay is _UNSET else retry_delay

        if count < 1:
            raise PipelineConfigError(f"retry_count must be at least 1, got {count}")
        if delay is not None and delay < 0:
            raise PipelineConfigError(f"retry_delay must not be negative, got {delay}")

        stage = RetryStage(func, name or self._default_name(), count, delay)
        return self.with_stage(stage)

    def step_with_timeout(
        self,
        func: StepFunc[TOut, TNext],
        timeout: float,
        name: Optional[str] = None,
        cancel_on_timeout: Optional[bool] = None,
    ) -> "Pipeline[TIn, TNext]":
        """
        Append a step that fails with StepTimeoutError after ``timeout`` seconds.

        The timed-out work is not cancelled by default and keeps running in
        the background; pass ``cancel_on_timeout=True`` to cancel it.

        Raises:
            PipelineConfigError: If timeout is not positive
        """
        if timeout <= 0:
            raise PipelineConfigError(f"timeout must be positive, got {timeout}")
        if cancel_on_timeout is None:
            cancel_on_timeout = get_config().cancel_on_timeout

        stage = TimeoutStage(func, name or self._default_name(), timeout, cancel_on_timeout)
        return self.with_stage(stage)

    def step_if(
        self,
        condition: Callable[[TOut], bool],
        when_true: Callable[["Pipeline[TOut, TOut]"], "Pipeline[TOut, TNext]"],
        when_false: Callable[["Pipeline[TOut, TOut]"], "Pipeline[TOut, TNext]"],
    ) -> "Pipeline[TIn, TNext]":
        """
        Append a conditional branch.

        At execution time ``condition`` is evaluated on the current value and
        the chosen builder is called with a fresh empty pipeline. The built
        sub-pipeline runs on the current value. Sub-pipelines do not inherit
        this pipeline's hooks and number their default step names from 1.
        """
        stage = BranchStage(self._default_name(), condition, when_true, when_false)
        return self.with_stage(stage)

    def parallel(
        self,
        step1: StepFunc[TOut, T1],
        step2: StepFunc[TOut, T2],
        merge: Callable[[T1, T2], TNext],
    ) -> "Pipeline[TIn, TNext]":
        """
        Append a two-way fan-out.

        Both steps run concurrently on the same value; ``merge`` combines
        their results. If either fails, the first failure to settle is raised.
        """
        return self.with_stage(ParallelStage(self._default_name(), step1, step2, merge))

    def validate(
        self,
        predicate: Callable[[TOut], bool],
        error_message: str = "Validation failed.",
    ) -> "Pipeline[TIn, TOut]":
        """Append a gate raising ValidationError when predicate returns False."""
        return self.with_stage(ValidateStage(self._default_name(), predicate, error_message))

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def on_step_start(self, handler: StartHook) -> "Pipeline[TIn, TOut]":
        """Return new pipeline whose start hook is handler (replaces any previous one)."""
        return Pipeline(self._chain, self._hooks.replace(on_start=handler))

    def on_step_success(self, handler: SuccessHook) -> "Pipeline[TIn, TOut]":
        """Return new pipeline whose success hook is handler, called with (name, elapsed seconds)."""
        return Pipeline(self._chain, self._hooks.replace(on_success=handler))

    def on_step_error(self, handler: ErrorHook) -> "Pipeline[TIn, TOut]":
        """Return new pipeline whose error hook is handler, called with (name, error)."""
        return Pipeline(self._chain, self._hooks.replace(on_error=handler))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, value: TIn) -> TOut:
        """
        Run all stages in order, each consuming the previous result.

        The first failing stage aborts the run and its error propagates
        unchanged (retry stages raise RetryExhaustedError).
        """
        current: Any = value
        for stage in self._chain:
            logger.debug(f"Running stage '{stage.name}'")
            current = await stage.execute(current, self._hooks)
        return current

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return self._chain.as_tuple()

    @property
    def hooks(self) -> StepHooks:
        return self._hooks

    def _default_name(self) -> str:
        return f"Step{len(self._chain) + 1}"

    def __len__(self) -> int:
        return len(self._chain)

    def __repr__(self) -> str:
        stage_names = [s.name for s in self._chain]
        return f"Pipeline(stages={stage_names})"
