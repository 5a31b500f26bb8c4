"""Exception hierarchy shared across pyorchestra.

Module-specific errors (ConditionSyntaxError, SinkError,
WorkflowCancelledError) live beside the code that raises them but all
derive from OrchestraError so callers can catch the package as a whole.
"""


class OrchestraError(Exception):
    """Base class for all pyorchestra errors."""

    pass


class WorkflowValidationError(OrchestraError):
    """A workflow definition is structurally invalid.

    Raised before any step runs. ``problems`` lists every issue found so
    authors can fix them in one pass instead of one at a time.
    """

    def __init__(self, workflow_id: str, problems: list[str]):
        self.workflow_id = workflow_id
        self.problems = list(problems)
        summary = "; ".join(self.problems)
        super().__init__(f"Workflow '{workflow_id}' is invalid: {summary}")


class StepTimeoutError(OrchestraError):
    """A single step attempt exceeded its own time budget."""

    def __init__(self, step_id: str, timeout_seconds: float):
        self.step_id = step_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Step '{step_id}' timed out after {timeout_seconds} seconds")


class ExecutorError(OrchestraError):
    """A step executor misbehaved (for example returned the wrong type)."""

    pass
