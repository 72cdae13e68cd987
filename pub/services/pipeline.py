"""Sequential step runner.

A pipeline is an ordered list of fallible steps sharing one context object.
Steps run strictly in order; the first error stops the run, unless the step
is marked ``OnError.DEGRADE`` and the error is a PrebuildDegraded, which is
reported as a warning and skipped over. A step may also end the run early
without error by returning ``Flow.STOP``.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum, auto

from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.services.publish_errors import PrebuildDegraded, PublishError

__all__ = ["Flow", "OnError", "Step", "run_steps"]


class Flow(Enum):
    CONTINUE = auto()
    STOP = auto()


class OnError(Enum):
    ABORT = auto()
    DEGRADE = auto()


@dataclass(frozen=True, slots=True)
class Step[C]:
    name: str
    action: Callable[[C], Result[Flow, PublishError]]
    on_error: OnError = OnError.ABORT
    enabled: bool = True


def run_steps[C](
    steps: Sequence[Step[C]], ctx: C, console: ConsoleProtocol
) -> Result[Flow, PublishError]:
    """Run steps in order.

    Returns:
        Ok(Flow.STOP) if a step stopped the run early, Ok(Flow.CONTINUE) if
        every step ran, or the first non-degradable Err
    """
    for step in steps:
        if not step.enabled:
            console.debug(f"skip {step.name}")
            continue

        console.debug(f"step {step.name}")
        result = step.action(ctx)
        if isinstance(result, Err):
            if step.on_error is OnError.DEGRADE and isinstance(result.error, PrebuildDegraded):
                console.warning(result.error.message)
                continue
            return result
        if result.value is Flow.STOP:
            return Ok(Flow.STOP)
    return Ok(Flow.CONTINUE)
