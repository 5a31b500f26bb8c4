"""
DAG: Parallel Execution Under a Concurrency Cap

A small computation DAG with one fan-out and one fan-in, run with the
parallel strategy. Independent steps share the concurrency window; a
step is admitted as soon as its own dependencies have finished.

```text
                ┌── mul_2 ──┐
        fetch ──┤           ├── aggregate
                └── square ─┘
```

Expected: aggregate = 10 * 2 + 10 * 10 = 120
Expected time: ~150ms (3 levels x 50ms)

Run with:
```bash
PYTHONPATH=src python examples/dag_parallel.py
```
"""

import asyncio
import logging

from pyorchestra import (
    ActionResult,
    EngineConfig,
    StepDefinition,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowType,
)
from pyorchestra.sinks import InMemoryStatusSink


async def compute(step, context, cancellation):
    await asyncio.sleep(0.05)

    if step.id == "fetch":
        value = 10
    elif step.id == "mul_2":
        value = context.get("fetch") * 2
    elif step.id == "square":
        value = context.get("fetch") ** 2
    else:
        value = context.get("mul_2") + context.get("square")

    context.set(step.id, value)
    print(f"[{step.id}] = {value}")
    return ActionResult.successful(f"{step.id} computed", {"value": value})


async def main():
    logging.basicConfig(level=logging.INFO)

    workflow = WorkflowDefinition(
        name="dag-parallel",
        type=WorkflowType.PARALLEL,
        steps=[
            StepDefinition("fetch"),
            StepDefinition("mul_2", dependencies=["fetch"]),
            StepDefinition("square", dependencies=["fetch"]),
            StepDefinition("aggregate", dependencies=["mul_2", "square"]),
        ],
        timeout_seconds=10,
    )

    sink = InMemoryStatusSink()
    engine = WorkflowEngine(
        compute,
        config=EngineConfig(max_concurrent_steps_per_workflow=2),
        status_sink=sink,
    )

    result = await engine.execute_workflow(workflow)
    await engine.shutdown()

    print(f"\n{result.state}: {result.message} ({result.duration_ms}ms)")
    print(f"aggregate = {result.step_results['aggregate'].data['value']}")
    print(f"status updates published: {len(sink.history(result.instance_id))}")


if __name__ == "__main__":
    asyncio.run(main())
