"""
Conditional branching with a compensating step.

A payment is charged; on success the order ships, on failure a refund
notice goes out instead. Status history is persisted to SQLite.

Run with:
```bash
PYTHONPATH=src python examples/conditional_refund.py
```
"""

import asyncio

from pyorchestra import (
    ActionResult,
    ExecutionContext,
    StepDefinition,
    StepState,
    WorkflowDefinition,
    WorkflowEngine,
    WorkflowType,
)
from pyorchestra.sinks import SqliteStatusSink


async def handle(step, context, cancellation):
    if step.id == "charge":
        if context.input_data.get("card") == "declined":
            return ActionResult.failed("card declined")
        return ActionResult.successful("charged", {"amount": 42})
    return ActionResult.successful(f"{step.id} done")


async def main():
    workflow = WorkflowDefinition(
        name="checkout",
        type=WorkflowType.CONDITIONAL,
        steps=[
            StepDefinition("charge", is_critical=False, continue_on_failure=True),
            StepDefinition("ship", dependencies=["charge"], condition="charge.success == true"),
            StepDefinition("notify_refund", dependencies=["charge"], condition="not charge.success"),
        ],
    )

    sink = await SqliteStatusSink.in_memory()
    engine = WorkflowEngine(handle).with_status_sink(sink)

    for card in ("valid", "declined"):
        context = ExecutionContext.with_input_data({"card": card})
        result = await engine.execute_workflow(workflow, context)
        await engine.shutdown()

        status = engine.get_workflow_status(result.instance_id)
        ran = list(result.step_results)
        skipped = status.steps_in(StepState.SKIPPED)
        print(f"card={card}: {result.state} ran={ran} skipped={skipped}")
        print(f"  {len(await sink.history(result.instance_id))} status updates recorded")

    await sink.close()


if __name__ == "__main__":
    asyncio.run(main())
