"""Execution strategies, one per WorkflowType."""

from pyorchestra.engine.strategies.base import ExecutionStrategy, RunState, StrategyOutcome
from pyorchestra.engine.strategies.conditional import ConditionalStrategy
from pyorchestra.engine.strategies.hierarchical import HierarchicalStrategy
from pyorchestra.engine.strategies.parallel import ParallelStrategy
from pyorchestra.engine.strategies.sequential import SequentialStrategy
from pyorchestra.models.workflow import WorkflowType


def strategy_for(workflow_type: WorkflowType, max_concurrent: int) -> ExecutionStrategy:
    """Build the strategy that drives workflows of ``workflow_type``."""
    if workflow_type == WorkflowType.SEQUENTIAL:
        return SequentialStrategy()
    elif workflow_type == WorkflowType.PARALLEL:
        return ParallelStrategy(max_concurrent)
    elif workflow_type == WorkflowType.CONDITIONAL:
        return ConditionalStrategy()
    elif workflow_type == WorkflowType.HIERARCHICAL:
        return HierarchicalStrategy()
    raise ValueError(f"Unsupported workflow type: {workflow_type}")


__all__ = [
    "ConditionalStrategy",
    "ExecutionStrategy",
    "HierarchicalStrategy",
    "ParallelStrategy",
    "RunState",
    "SequentialStrategy",
    "StrategyOutcome",
    "strategy_for",
]
