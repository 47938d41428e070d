"""
Tests for data models.
"""

import pytest

from branchstack.models import (
    AlreadyTrackedError,
    BranchEntry,
    BranchStatus,
    GatewayError,
    GitRepositoryError,
    LockHeldError,
    NoBaseBranchError,
    NotInStackError,
    PreconditionError,
    RestackResult,
    RestackState,
    StackError,
    StackSummary,
    StoreError,
    StoreIntegrityError,
    TopologyError,
    UncommittedChangesError,
)


class TestStackSummary:
    """Test StackSummary model."""

    def setup_method(self):
        """Build a two-branch stack."""
        self.summary = StackSummary(
            id=1,
            name="stack/checkout",
            repository_name="acme/widgets",
            base_branch="main",
            branches=[
                BranchEntry(id=10, name="feat-a", stack_id=1, position=0),
                BranchEntry(id=11, name="feat-b", stack_id=1, position=1, parent_name="feat-a"),
            ],
        )

    def test_branch_names_in_position_order(self):
        """Test branch names follow the stored order."""
        assert self.summary.branch_names == ["feat-a", "feat-b"]

    def test_get_branch(self):
        """Test lookup by name."""
        assert self.summary.get_branch("feat-b").parent_name == "feat-a"
        assert self.summary.get_branch("feat-z") is None

    def test_branch_entry_defaults(self):
        """Test a new entry is active with no commit."""
        entry = self.summary.branches[0]
        assert entry.status == BranchStatus.ACTIVE.value
        assert entry.latest_commit is None


class TestRestackResult:
    """Test RestackResult model."""

    def test_is_paused(self):
        assert RestackResult(state=RestackState.PAUSED).is_paused
        assert not RestackResult(state=RestackState.COMPLETED).is_paused

    def test_defaults(self):
        result = RestackResult(state=RestackState.NOTHING_TO_CONTINUE)
        assert result.rebased == []
        assert result.conflict is None


class TestExceptions:
    """Test exception hierarchy."""

    @pytest.mark.parametrize(
        "error, parent",
        [
            (UncommittedChangesError(), PreconditionError),
            (NotInStackError("feat-a"), PreconditionError),
            (LockHeldError("busy"), PreconditionError),
            (NoBaseBranchError(["main"]), TopologyError),
            (GitRepositoryError("boom"), GatewayError),
            (StoreIntegrityError("bad"), StoreError),
        ],
    )
    def test_hierarchy(self, error, parent):
        """Test every error is a StackError under its category."""
        assert isinstance(error, parent)
        assert isinstance(error, StackError)

    def test_messages(self):
        """Test messages name the branch involved."""
        assert str(NotInStackError("feat-a")) == "Branch 'feat-a' is not part of a stack"
        assert str(AlreadyTrackedError("feat-a", "stack/one")) == (
            "Branch 'feat-a' is already tracked in stack 'stack/one'"
        )
        assert "uncommitted changes" in str(UncommittedChangesError())
