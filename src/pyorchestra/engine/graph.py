"""
Dependency graph over a workflow's steps.

WorkflowGraph is the engine's view of a WorkflowDefinition as a directed
graph: edges run from a dependency to the step that needs it. It is used
to reject malformed definitions before a run starts and to answer the
structural questions strategies ask (roots, children).

**Example**:
```python
graph = WorkflowGraph(workflow)
graph.validate()            # raises WorkflowValidationError
for root in graph.roots():
    print(root.id, [child.id for child in graph.children(root.id)])
```

Every traversal here uses an explicit stack or queue, so long dependency
chains are bounded by memory rather than by the interpreter's recursion
limit.
"""

from __future__ import annotations

from pyorchestra.errors import WorkflowValidationError
from pyorchestra.models.workflow import StepDefinition, WorkflowDefinition


class WorkflowGraph:
    def __init__(self, workflow: WorkflowDefinition):
        self.workflow = workflow
        self.steps: list[StepDefinition] = list(workflow.steps)
        self._by_id: dict[str, StepDefinition] = {}
        for step in self.steps:
            self._by_id.setdefault(step.id, step)

        self._children: dict[str, list[str]] = {step_id: [] for step_id in self._by_id}
        for step in self.steps:
            for dep in step.dependencies:
                children = self._children.get(dep)
                if children is not None and step.id not in children:
                    children.append(step.id)

    def __len__(self) -> int:
        return len(self.steps)

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._by_id

    def step(self, step_id: str) -> StepDefinition:
        return self._by_id[step_id]

    def roots(self) -> list[StepDefinition]:
        """Steps with no dependencies, in declaration order."""
        return [step for step in self.steps if not step.dependencies]

    def children(self, step_id: str) -> list[StepDefinition]:
        """Steps that depend on ``step_id``, in declaration order."""
        return [self._by_id[child] for child in self._children.get(step_id, [])]

    def descendants(self, step_id: str) -> list[StepDefinition]:
        """Every step reachable from ``step_id``, breadth first, without repeats."""
        seen: set[str] = set()
        ordered: list[StepDefinition] = []
        frontier = [step_id]
        while frontier:
            current = frontier.pop(0)
            for child in self._children.get(current, []):
                if child not in seen:
                    seen.add(child)
                    ordered.append(self._by_id[child])
                    frontier.append(child)
        return ordered

    def problems(self) -> list[str]:
        """
        Collect every structural problem in the definition.

        Checks for:
        - An empty step list
        - Duplicate step ids
        - Self-dependencies
        - Dependencies on steps that do not exist
        - Cycles in the dependency graph

        **Returns**:
            Human-readable problem descriptions; empty if the graph is valid
        """
        problems: list[str] = []

        if not self.steps:
            problems.append("Workflow has no steps")
            return problems

        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                problems.append(f"Duplicate step id '{step.id}'")
            seen.add(step.id)

        for step in self.steps:
            for dep in step.dependencies:
                if dep == step.id:
                    problems.append(f"Step '{step.id}' depends on itself")
                elif dep not in self._by_id:
                    problems.append(f"Step '{step.id}' depends on non-existent step '{dep}'")

        cycle = self._find_cycle()
        if cycle:
            problems.append(f"Cycle detected in dependency graph: {' -> '.join(cycle)}")

        return problems

    def validate(self) -> None:
        """
        Validate the graph without executing anything.

        **Raises**:
            WorkflowValidationError: listing every problem found
        """
        problems = self.problems()
        if problems:
            raise WorkflowValidationError(self.workflow.id, problems)

    def _find_cycle(self) -> list[str] | None:
        # Self-loops and unknown dependencies are reported separately.
        visited: set[str] = set()

        for start in self._by_id:
            if start in visited:
                continue

            visited.add(start)
            path: list[str] = [start]
            on_path: set[str] = {start}
            pending = [iter(self._by_id[start].dependencies)]

            while pending:
                dep = next(pending[-1], None)
                if dep is None:
                    pending.pop()
                    on_path.discard(path.pop())
                    continue
                if dep == path[-1] or dep not in self._by_id:
                    continue
                if dep in on_path:
                    return path[path.index(dep) :] + [dep]
                if dep not in visited:
                    visited.add(dep)
                    path.append(dep)
                    on_path.add(dep)
                    pending.append(iter(self._by_id[dep].dependencies))

        return None
