import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from .hooks import StepHooks

A = TypeVar("A")
B = TypeVar("B")

# A step callable may be a coroutine function or a plain function.
StepFunc = Callable[[A], Union[Awaitable[B], B]]


async def call_step(func: Callable[..., Any], *args: Any) -> Any:
    """Invoke func and await its result when it is awaitable."""
    result = func(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class Stage(ABC, Generic[A, B]):
    """Base class for all pipeline stages. Consumes the current value and returns the next one."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    async def execute(self, value: A, hooks: StepHooks) -> B:
        """
        Execute stage logic and return the new current value.

        ``hooks`` are the lifecycle hooks of the pipeline being executed.
        Only plain steps fire them; other stages ignore them.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
