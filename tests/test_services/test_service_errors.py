"""Tests for workflow step logging and cascade errors."""

import pytest

from kitledger.services.errors import CascadeError, StepLog


class TestStepLog:
    def test_first_failure_propagates_unchanged(self):
        log = StepLog()
        error = RuntimeError("first")
        with pytest.raises(RuntimeError) as exc:
            try:
                raise error
            except RuntimeError as e:
                log.fail("step one", e)
        assert exc.value is error

    def test_later_failure_wraps(self):
        log = StepLog()
        log.done("a")
        log.done("b")
        error = RuntimeError("third")
        with pytest.raises(CascadeError) as exc:
            try:
                raise error
            except RuntimeError as e:
                log.fail("c", e)
        err = exc.value
        assert err.step == "c"
        assert err.completed == ["a", "b"]
        assert err.cause is error
        assert err.__cause__ is error


class TestCascadeError:
    def test_message_lists_committed_steps(self):
        err = CascadeError("record sale 4", ["sales order 4", "line 1"])
        assert str(err) == (
            "record sale 4 failed; already committed: sales order 4, line 1")

    def test_message_with_nothing_committed(self):
        assert "already committed: nothing" in str(CascadeError("x", []))

    def test_completed_is_copied(self):
        steps = ["a"]
        err = CascadeError("b", steps)
        steps.append("c")
        assert err.completed == ["a"]
