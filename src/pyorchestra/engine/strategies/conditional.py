"""Conditional strategy: sequential, with each step gated by readiness."""

from __future__ import annotations

from pyorchestra.engine.strategies.base import RunState
from pyorchestra.engine.strategies.sequential import SequentialStrategy
from pyorchestra.models.workflow import StepDefinition


class ConditionalStrategy(SequentialStrategy):
    """
    Declaration order, but a step runs only when it is ready.

    Ready means every dependency has a recorded result and either
    - the step has no condition and every dependency succeeded, or
    - the step's condition evaluates true.

    Steps that are not ready are SKIPPED. Skips are not failures, but they
    still count toward completed_steps and progress.
    """

    def skip_reason(self, step: StepDefinition, run: RunState) -> str | None:
        missing = [dep for dep in step.dependencies if dep not in run.step_results]
        if missing:
            return f"dependencies not finished: {', '.join(missing)}"

        if not step.has_condition:
            failed = [dep for dep in step.dependencies if not run.step_results[dep].success]
            if failed:
                return f"dependencies failed: {', '.join(failed)}"
            return None

        if run.evaluator.evaluate(step.condition, run.step_results, run.context):
            return None
        return "condition not met"
