"""Workflow-level errors."""


class WorkflowError(Exception):
    pass


class LookupFailed(WorkflowError):
    """A recipient record referenced by a subject is missing."""

    reason = "lookup_failed"


class UnknownWorkflow(WorkflowError):
    pass
