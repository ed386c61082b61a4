"""Lifecycle hooks fired around plain pipeline steps."""

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Optional

# (step name)
StartHook = Callable[[str], Any]
# (step name, elapsed seconds)
SuccessHook = Callable[[str, float], Any]
# (step name, error)
ErrorHook = Callable[[str, BaseException], Any]


@dataclass(frozen=True)
class StepHooks:
    """
    One optional handler per hook kind.

    Handlers are synchronous, best-effort notifications. Whatever they raise
    propagates to the caller of ``execute`` untouched.
    """

    on_start: Optional[StartHook] = None
    on_success: Optional[SuccessHook] = None
    on_error: Optional[ErrorHook] = None

    def replace(self, **changes: Any) -> "StepHooks":
        """Return new hooks with the given slots replaced."""
        return dataclasses.replace(self, **changes)

    def notify_start(self, name: str) -> None:
        if self.on_start is not None:
            self.on_start(name)

    def notify_success(self, name: str, elapsed: float) -> None:
        if self.on_success is not None:
            self.on_success(name, elapsed)

    def notify_error(self, name: str, error: BaseException) -> None:
        if self.on_error is not None:
            self.on_error(name, error)


NO_HOOKS = StepHooks()
