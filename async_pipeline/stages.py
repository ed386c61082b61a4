"""Built-in stages backing the Pipeline builder methods."""

import asyncio
import logging
import time
from typing import Any, Callable, Optional, Set

from .base import Stage, StepFunc, call_step
from .errors import (
    PipelineConfigError,
    RetryExhaustedError,
    StepTimeoutError,
    ValidationError,
)
from .hooks import StepHooks

logger = logging.getLogger(__name__)

# Timed-out tasks that were left running. Held here so the event loop's
# weak references are not the only thing keeping them alive.
_orphaned_tasks: Set["asyncio.Future[Any]"] = set()


class CallableStage(Stage):
    """Stage wrapping a single user callable under a display name."""

    def __init__(self, func: StepFunc, name: str):
        self.func = func
        self._name = name

    @property
    def name(self) -> str:
        return self._name


class PlainStage(CallableStage):
    """Invokes the callable once and reports to the lifecycle hooks."""

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        started = time.perf_counter()
        hooks.notify_start(self.name)

        try:
            result = await call_step(self.func, value)
        except Exception as e:
            logger.debug(f"Step '{self.name}' failed: {e!r}")
            hooks.notify_error(self.name, e)
            raise

        elapsed = time.perf_counter() - started
        logger.debug(f"Step '{self.name}' completed in {elapsed * 1000:.1f}ms")
        hooks.notify_success(self.name, elapsed)
        return result


class RetryStage(CallableStage):
    """
    Invokes the callable up to ``retry_count`` times.

    Hooks are not fired for retry stages.
    """

    def __init__(
        self,
        func: StepFunc,
        name: str,
        retry_count: int = 3,
        retry_delay: Optional[float] = None,
    ):
        super().__init__(func, name)
        self.retry_count = retry_count
        self.retry_delay = retry_delay

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.retry_count + 1):
            try:
                return await call_step(self.func, value)

            except Exception as e:
                last_error = e
                logger.warning(
                    f"Step '{self.name}' failed (attempt {attempt}/{self.retry_count}): {e!r}"
                )

                # Wait before the next attempt, never after the last one
                if attempt < self.retry_count and self.retry_delay:
                    await asyncio.sleep(self.retry_delay)

        logger.error(f"Step '{self.name}' failed after {self.retry_count} attempts")
        raise RetryExhaustedError(self.name, self.retry_count, last_error) from last_error


class TimeoutStage(CallableStage):
    """
    Races the callable against a timer.

    When the timer wins the callable's task is left running unless
    ``cancel_on_timeout`` is set; its eventual outcome is discarded.
    Hooks are not fired for timeout stages.
    """

    def __init__(
        self,
        func: StepFunc,
        name: str,
        timeout: float,
        cancel_on_timeout: bool = False,
    ):
        super().__init__(func, name)
        self.timeout = timeout
        self.cancel_on_timeout = cancel_on_timeout

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        task = asyncio.ensure_future(call_step(self.func, value))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)

        if task in done:
            return task.result()

        logger.warning(f"Step '{self.name}' exceeded timeout of {self.timeout}s")
        if self.cancel_on_timeout:
            task.cancel()
        else:
            _orphan(task, self.name)
        raise StepTimeoutError(self.name, self.timeout)


def _orphan(task: "asyncio.Future[Any]", name: str) -> None:
    _orphaned_tasks.add(task)

    def _discard(fut: "asyncio.Future[Any]") -> None:
        _orphaned_tasks.discard(fut)
        if fut.cancelled():
            return
        error = fut.exception()
        if error is not None:
            logger.debug(f"Discarded error from timed-out step '{name}': {error!r}")
        else:
            logger.debug(f"Discarded late result from timed-out step '{name}'")

    task.add_done_callback(_discard)


class BranchStage(Stage):
    """
    Chooses a sub-pipeline from a synchronous condition on the current value.

    The sub-pipeline is rebuilt from its builder on every execution.
    """

    def __init__(
        self,
        name: str,
        condition: Callable[[Any], bool],
        when_true: Callable[[Any], Any],
        when_false: Callable[[Any], Any],
    ):
        self._name = name
        self.condition = condition
        self.when_true = when_true
        self.when_false = when_false

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        from .pipeline import Pipeline

        taken = bool(self.condition(value))
        builder = self.when_true if taken else self.when_false
        branch = builder(Pipeline.start())

        if not isinstance(branch, Pipeline):
            raise PipelineConfigError(
                f"Branch builder for '{self.name}' must return a Pipeline, "
                f"got {type(branch).__name__}"
            )

        logger.debug(
            f"Step '{self.name}' took {'true' if taken else 'false'} branch "
            f"({len(branch)} stages)"
        )
        return await branch.execute(value)


class ParallelStage(Stage):
    """
    Runs two callables concurrently on the same value and merges the results.

    Both tasks are awaited until they settle. If either fails, the failure
    that settled first is raised and any second failure is discarded.
    Cancelling the enclosing execution cancels whichever tasks are still
    running.
    """

    def __init__(
        self,
        name: str,
        step1: StepFunc,
        step2: StepFunc,
        merge: Callable[[Any, Any], Any],
    ):
        self._name = name
        self.step1 = step1
        self.step2 = step2
        self.merge = merge

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        tasks = [
            asyncio.ensure_future(call_step(self.step1, value)),
            asyncio.ensure_future(call_step(self.step2, value)),
        ]

        first_error: Optional[Exception] = None
        try:
            for settled in asyncio.as_completed(tasks):
                try:
                    await settled
                except Exception as e:
                    if first_error is None:
                        first_error = e
                    else:
                        logger.debug(f"Step '{self.name}' discarded second failure: {e!r}")
        except asyncio.CancelledError:
            for task in tasks:
                if not task.done():
                    task.cancel()
            raise

        if first_error is not None:
            raise first_error

        return await call_step(self.merge, tasks[0].result(), tasks[1].result())


class ValidateStage(Stage):
    """Passes the value through unchanged when the predicate accepts it."""

    def __init__(
        self,
        name: str,
        predicate: Callable[[Any], bool],
        error_message: str = "Validation failed.",
    ):
        self._name = name
        self.predicate = predicate
        self.error_message = error_message

    @property
    def name(self) -> str:
        return self._name

    async def execute(self, value: Any, hooks: StepHooks) -> Any:
        if not self.predicate(value):
            logger.debug(f"Step '{self.name}' rejected value: {self.error_message}")
            raise ValidationError(self.error_message, value)
        return value
