"""Interceptors: functions and methods run before, after or around an action.

An interceptor may return a result instead of None. A result returned by a
BEFORE interceptor is final: no further interceptors run, and neither does the
action. Results of later stages replace any existing result, but a following
interceptor may still replace it again. Interceptors run in the order in which
they were added.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum


class When(Enum):
    """The stage of a request at which an interceptor runs."""

    BEFORE = "before"
    AFTER = "after"
    PANIC = "panic"
    FINALLY = "finally"


class InterceptTarget(Enum):
    """Special interceptor targets."""

    ALL_CONTROLLERS = "all controllers"


ALL_CONTROLLERS = InterceptTarget.ALL_CONTROLLERS


def _parameter_count(method: Callable[..., object]) -> int:
    """Count the positional and keyword-only parameters of a plain function."""
    code = getattr(method, "__code__", None)
    if code is None:
        raise TypeError(f"cannot inspect interceptor method {method!r}")
    count = code.co_argcount + code.co_kwonlyargcount
    if getattr(method, "__self__", None) is not None:
        count -= 1
    return count


@dataclass(frozen=True)
class Interception:
    """One installed interceptor, with the controllers it applies to.

    A target of None means every controller.
    """

    when: When
    function: Callable[[object], object]
    target: type | None = None
    is_method: bool = False

    def applies_to(self, controller: object) -> bool:
        """Tell whether this interceptor runs for the given controller."""
        return self.target is None or isinstance(controller, self.target)

    def invoke(self, controller: object) -> object:
        """Call the interceptor with the controller and return its result."""
        return self.function(controller)


@dataclass
class InterceptorRegistry:
    """The installed interceptors, in installation order."""

    interceptions: list[Interception] = field(default_factory=list)

    def intercept_func(
        self, func: Callable[[object], object], when: When, target: object
    ) -> Interception:
        """Install a function interceptor for a controller class, or ALL_CONTROLLERS.

        An instance may be given as target; its class is then used.
        """
        if not callable(func):
            raise TypeError(f"interceptor must be callable, got {func!r}")
        if target is ALL_CONTROLLERS:
            target_type = None
        elif isinstance(target, type):
            target_type = target
        else:
            target_type = type(target)
        interception = Interception(when=when, function=func, target=target_type)
        self.interceptions.append(interception)
        return interception

    def intercept_method(
        self, method: Callable[[object], object], when: When, target: type
    ) -> Interception:
        """Install an unbound method of target, called with the controller as self."""
        if not callable(method):
            raise TypeError(f"interceptor method must be callable, got {method!r}")
        count = _parameter_count(method)
        if count != 1:
            raise TypeError(
                "Interceptor method should take exactly one argument, the controller, "
                f"but {method!r} takes {count}"
            )
        if not isinstance(target, type):
            raise TypeError(f"interceptor method target must be a class, got {target!r}")
        interception = Interception(when=when, function=method, target=target, is_method=True)
        self.interceptions.append(interception)
        return interception

    def interceptors_for(self, when: When, controller: object) -> list[Interception]:
        """Return the interceptors for the stage that apply to the controller."""
        return [
            interception
            for interception in self.interceptions
            if interception.when is when and interception.applies_to(controller)
        ]

    def invoke(self, when: When, controller: object) -> None:
        """Run the stage's interceptors, storing any result on controller.result."""
        result = None
        for interception in self.interceptors_for(when, controller):
            returned = interception.invoke(controller)
            if returned is not None:
                result = returned
            if when is When.BEFORE and result is not None:
                controller.result = result
                return
        if result is not None:
            controller.result = result

    def run(self, controller: object, action: Callable[[object], object]) -> None:
        """Run the action wrapped in all four interceptor stages.

        A result from a BEFORE interceptor skips the action. An exception runs
        the PANIC interceptors and is then raised again; FINALLY always runs.
        """
        try:
            self.invoke(When.BEFORE, controller)
            if getattr(controller, "result", None) is not None:
                return
            returned = action(controller)
            if returned is not None:
                controller.result = returned
            self.invoke(When.AFTER, controller)
        except BaseException:
            self.invoke(When.PANIC, controller)
            raise
        finally:
            self.invoke(When.FINALLY, controller)