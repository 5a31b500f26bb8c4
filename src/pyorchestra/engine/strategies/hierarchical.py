"""Hierarchical strategy: depth-first walk from each root down its dependents."""

from __future__ import annotations

import logging

from pyorchestra.engine.graph import WorkflowGraph
from pyorchestra.engine.strategies.base import ExecutionStrategy, RunState, StrategyOutcome
from pyorchestra.models.status import StepState
from pyorchestra.models.workflow import ErrorHandlingMode, StepDefinition

logger = logging.getLogger(__name__)


class HierarchicalStrategy(ExecutionStrategy):
    """
    Treats the workflow as a forest rooted at its dependency-free steps.

    Rules:
    - A step runs only once every dependency is terminal; until then it
      is deferred and revisited when its last dependency finishes.
    - A step whose dependency was SKIPPED, or FAILED without tolerance,
      is SKIPPED together with everything below it.
    - No step runs twice, however many parents it has.
    - Under STOP_WORKFLOW, remaining root branches are abandoned once any
      step has failed.
    """

    async def execute(self, run: RunState) -> StrategyOutcome:
        graph = WorkflowGraph(run.workflow)
        states: dict[str, StepState] = {}

        for root in graph.roots():
            run.cancellation.raise_if_cancelled()
            await self._walk(root, graph, run, states)

            if run.mode == ErrorHandlingMode.STOP_WORKFLOW and self._failed(states):
                logger.info(f"Run {run.context.instance_id}: stopping after failed branch '{root.id}'")
                break

        failed = self._failed(states)
        if failed:
            if run.mode == ErrorHandlingMode.STOP_WORKFLOW:
                return StrategyOutcome(False, "Workflow stopped due to failed steps")
            return StrategyOutcome(False, f"Workflow completed with {failed} failed steps")
        return StrategyOutcome(True, "Workflow executed successfully")

    @staticmethod
    def _failed(states: dict[str, StepState]) -> int:
        return sum(1 for state in states.values() if state == StepState.FAILED)

    async def _walk(
        self,
        root: StepDefinition,
        graph: WorkflowGraph,
        run: RunState,
        states: dict[str, StepState],
    ) -> None:
        # LIFO worklist; children are pushed in reverse so the first child's
        # subtree is finished before its next sibling starts.
        pending = [root]
        while pending:
            run.cancellation.raise_if_cancelled()
            step = pending.pop()
            if step.id in states:
                continue

            if any(dep not in states for dep in step.dependencies):
                logger.debug(f"Deferring step '{step.id}' until its dependencies finish")
                continue

            blocking = [
                dep
                for dep in step.dependencies
                if states[dep] == StepState.SKIPPED
                or (
                    states[dep] == StepState.FAILED
                    and not run.tolerates_failure_of(graph.step(dep))
                )
            ]
            if blocking:
                self._skip_branch(
                    step, graph, run, states, f"unsatisfied dependency '{blocking[0]}'"
                )
                continue

            outcome = await run.runner.run(step, run.context)
            run.record(outcome)
            states[step.id] = StepState.COMPLETED if outcome.succeeded else StepState.FAILED

            if not outcome.succeeded and not run.tolerates_failure_of(step):
                for child in graph.children(step.id):
                    self._skip_branch(child, graph, run, states, f"dependency '{step.id}' failed")
                continue

            pending.extend(reversed(graph.children(step.id)))

    @staticmethod
    def _skip_branch(
        step: StepDefinition,
        graph: WorkflowGraph,
        run: RunState,
        states: dict[str, StepState],
        reason: str,
    ) -> None:
        for target in [step, *graph.descendants(step.id)]:
            if target.id in states:
                continue
            states[target.id] = StepState.SKIPPED
            run.tracker.step_skipped(target, reason, counts_as_completed=False)
