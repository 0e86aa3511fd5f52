"""Errors raised by client-orchestrated multi-step workflows."""

from typing import Optional


class CascadeError(Exception):
    """A workflow step failed after earlier steps were committed remotely.

    No rollback is attempted: ``completed`` lists what is already
    committed so the caller can report it or repair it.
    """

    def __init__(self, step: str, completed: list[str],
                 cause: Optional[BaseException] = None):
        done = ", ".join(completed) if completed else "nothing"
        super().__init__(f"{step} failed; already committed: {done}")
        self.step = step
        self.completed = list(completed)
        self.cause = cause


class StepLog:
    """Records finished workflow steps and wraps the first failure."""

    def __init__(self):
        self.completed: list[str] = []

    def done(self, step: str):
        self.completed.append(step)

    def fail(self, step: str, error: BaseException):
        """Raise for a failure at ``step``.

        Before anything was committed the original error propagates
        unchanged; afterwards it is wrapped in a CascadeError.
        """
        if not self.completed:
            raise error
        raise CascadeError(step, self.completed, cause=error) from error
