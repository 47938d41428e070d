"""
Tests for the CLI interface.
"""

from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from branchstack import __version__
from branchstack.cli import EXIT_CONFLICT, EXIT_PRECONDITION, EXIT_TOPOLOGY, cli
from branchstack.models import (
    PENDING_FOLD,
    PENDING_RESTACK,
    BranchEntry,
    BranchStatus,
    CommitInfo,
    ConflictInfo,
    FoldResult,
    LockHeldError,
    MultipleBranchesError,
    PendingOperation,
    PreconditionError,
    RestackResult,
    RestackState,
    StackSummary,
    UncommittedChangesError,
)


def make_manager():
    manager = Mock()
    manager.repository_name = 'acme/widgets'
    manager.pending_operation.return_value = None
    return manager


def make_summary(stack_id=1, name='stack/checkout'):
    return StackSummary(
        id=stack_id,
        name=name,
        repository_name='acme/widgets',
        base_branch='main',
        branches=[
            BranchEntry(id=1, name='feat-a', stack_id=stack_id, position=0),
            BranchEntry(id=2, name='feat-b', stack_id=stack_id, position=1, parent_name='feat-a'),
        ],
    )


class TestCLI:
    """Test CLI commands."""

    @pytest.fixture(autouse=True)
    def _isolated_home(self, tmp_path):
        """Keep database, logs and locks inside tmp_path."""
        self.env = {
            'BRANCHSTACK_HOME': str(tmp_path),
            'BRANCHSTACK_DB': None,
            'BRANCHSTACK_LOG': None,
        }

    def setup_method(self):
        """Setup test environment."""
        self.runner = CliRunner()

    def invoke(self, args, **kwargs):
        return self.runner.invoke(cli, args, env=self.env, **kwargs)

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.invoke(['--help'])
        assert result.exit_code == 0
        assert 'Branch Stack Tool' in result.output
        assert 'restack' in result.output

    def test_version_option(self):
        """Test --version prints the package version."""
        result = self.invoke(['--version'])
        assert result.exit_code == 0
        assert f'branchstack {__version__}' in result.output

    def test_version_command(self):
        result = self.invoke(['version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_command(self):
        """Test invalid command handling."""
        result = self.invoke(['invalid-command'])
        assert result.exit_code != 0

    @patch('branchstack.cli.StackManager')
    def test_init_with_options(self, mock_manager_class):
        """Test init stores the given base branches."""
        manager = make_manager()
        manager.configure_repository.return_value = ['main', 'develop']
        mock_manager_class.return_value = manager

        result = self.invoke(['init', '-b', 'main', '-b', 'develop'])

        assert result.exit_code == 0
        manager.configure_repository.assert_called_once_with(['main', 'develop'])
        assert 'main, develop' in result.output

    @patch('branchstack.cli.StackManager')
    def test_init_prompts_with_suggestions(self, mock_manager_class):
        """Test init prompts when no base branch is given."""
        manager = make_manager()
        manager.git_manager.list_local_branches.return_value = ['main', 'develop', 'feat-a']
        manager.configure_repository.side_effect = lambda names: list(names)
        mock_manager_class.return_value = manager

        result = self.invoke(['init'], input='\n')

        assert result.exit_code == 0
        manager.configure_repository.assert_called_once_with(['main', 'develop'])

    @patch('branchstack.cli.StackManager')
    def test_create_command(self, mock_manager_class):
        manager = make_manager()
        manager.create_branch.return_value = BranchEntry(
            id=3, name='feat-c', stack_id=1, position=2, parent_name='feat-b'
        )
        mock_manager_class.return_value = manager

        result = self.invoke(['create', 'feat-c'])

        assert result.exit_code == 0
        manager.create_branch.assert_called_once_with('feat-c')
        assert 'feat-c' in result.output

    @patch('branchstack.cli.repository_lock')
    @patch('branchstack.cli.StackManager')
    def test_lock_held_is_a_precondition(self, mock_manager_class, mock_lock):
        """Test a held repository lock stops the command before any change."""
        manager = make_manager()
        mock_manager_class.return_value = manager
        mock_lock.side_effect = LockHeldError('Another branchstack command is running')

        result = self.invoke(['create', 'feat-c'])

        assert result.exit_code == EXIT_PRECONDITION
        assert 'Another branchstack command is running' in result.output
        manager.create_branch.assert_not_called()

    @patch('branchstack.cli.RebaseOrchestrator')
    def test_restack_completed(self, mock_orchestrator_class):
        """Test successful restack."""
        orchestrator = Mock()
        orchestrator.repository_name = 'acme/widgets'
        orchestrator.restack.return_value = RestackResult(
            state=RestackState.COMPLETED, stack_name='stack/checkout', rebased=['feat-a', 'feat-b']
        )
        mock_orchestrator_class.return_value = orchestrator

        result = self.invoke(['restack'])

        assert result.exit_code == 0
        assert 'Restack completed' in result.output
        orchestrator.restack.assert_called_once_with(None, stop_at=None, whole_stack=False)

    @patch('branchstack.cli.RebaseOrchestrator')
    def test_restack_all_uses_top_branch(self, mock_orchestrator_class):
        """Test --all restacks up to the top of the stack."""
        orchestrator = Mock()
        orchestrator.repository_name = 'acme/widgets'
        orchestrator.restack.return_value = RestackResult(state=RestackState.COMPLETED)
        mock_orchestrator_class.return_value = orchestrator

        result = self.invoke(['restack', '--all', '--stack', '1'])

        assert result.exit_code == 0
        orchestrator.restack.assert_called_once_with(1, stop_at=None, whole_stack=True)

    @patch('branchstack.cli.RebaseOrchestrator')
    def test_restack_paused_on_conflict(self, mock_orchestrator_class):
        """Test a paused restack lists conflicts and exits with the conflict code."""
        orchestrator = Mock()
        orchestrator.repository_name = 'acme/widgets'
        orchestrator.restack.return_value = RestackResult(
            state=RestackState.PAUSED,
            rebased=['feat-a'],
            conflict=ConflictInfo(branch='feat-b', files=['app.py']),
        )
        mock_orchestrator_class.return_value = orchestrator

        result = self.invoke(['restack'])

        assert result.exit_code == EXIT_CONFLICT
        assert 'Conflicts in feat-b' in result.output
        assert 'app.py' in result.output

    @patch('branchstack.cli.RebaseOrchestrator')
    def test_restack_precondition_error(self, mock_orchestrator_class):
        orchestrator = Mock()
        orchestrator.repository_name = 'acme/widgets'
        orchestrator.restack.side_effect = UncommittedChangesError()
        mock_orchestrator_class.return_value = orchestrator

        result = self.invoke(['restack'])

        assert result.exit_code == EXIT_PRECONDITION
        assert 'Cannot restack' in result.output

    @patch('branchstack.cli.RebaseOrchestrator')
    def test_unexpected_error(self, mock_orchestrator_class):
        """Test unexpected errors exit with code 1."""
        orchestrator = Mock()
        orchestrator.repository_name = 'acme/widgets'
        orchestrator.restack.side_effect = RuntimeError('disk on fire')
        mock_orchestrator_class.return_value = orchestrator

        result = self.invoke(['restack'])

        assert result.exit_code == 1
        assert 'Unexpected Error' in result.output

    @patch('branchstack.cli.HistoryImporter')
    @patch('branchstack.cli.GitManager')
    def test_import_topology_error(self, mock_git_class, mock_importer_class):
        """Test history that is not a linear stack exits with the topology code."""
        mock_git_class.return_value.get_repository_name.return_value = 'acme/widgets'
        importer = Mock()
        importer.import_stack.side_effect = MultipleBranchesError('abc1234567', ['feat-a', 'feat-b'])
        mock_importer_class.return_value = importer

        result = self.invoke(['import', 'checkout'])

        assert result.exit_code == EXIT_TOPOLOGY
        assert 'Multiple branches found' in result.output

    @patch('branchstack.cli.HistoryImporter')
    @patch('branchstack.cli.GitManager')
    def test_import_success(self, mock_git_class, mock_importer_class):
        mock_git_class.return_value.get_repository_name.return_value = 'acme/widgets'
        mock_git_class.return_value.get_current_branch.return_value = 'feat-b'
        importer = Mock()
        importer.import_stack.return_value = make_summary()
        mock_importer_class.return_value = importer

        result = self.invoke(['import', 'checkout'])

        assert result.exit_code == 0
        importer.import_stack.assert_called_once_with('checkout', 'acme/widgets')
        assert 'Imported stack/checkout' in result.output

    @patch('branchstack.cli.StackManager')
    def test_fold_with_yes(self, mock_manager_class):
        manager = make_manager()
        manager.downstream_branch.return_value = 'feat-a'
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        manager.fold.return_value = FoldResult(folded_branch='feat-b', target_branch='feat-a', completed=True)
        mock_manager_class.return_value = manager

        result = self.invoke(['fold', '--yes'])

        assert result.exit_code == 0
        manager.fold.assert_called_once_with('feat-b')
        assert 'Folded' in result.output

    @patch('branchstack.cli.StackManager')
    def test_fold_declined(self, mock_manager_class):
        """Test answering no leaves the stack alone."""
        manager = make_manager()
        manager.downstream_branch.return_value = 'feat-a'
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        mock_manager_class.return_value = manager

        result = self.invoke(['fold'], input='n\n')

        assert result.exit_code == 0
        assert 'Fold cancelled' in result.output
        manager.fold.assert_not_called()

    @patch('branchstack.cli.StackManager')
    def test_fold_at_bottom(self, mock_manager_class):
        manager = make_manager()
        manager.downstream_branch.return_value = None
        manager.git_manager.get_current_branch.return_value = 'feat-a'
        mock_manager_class.return_value = manager

        result = self.invoke(['fold', '--yes'])

        assert result.exit_code == EXIT_PRECONDITION
        assert 'bottom of its stack' in result.output

    @patch('branchstack.cli.RebaseOrchestrator')
    @patch('branchstack.cli.StackManager')
    def test_continue_routes_to_fold(self, mock_manager_class, mock_orchestrator_class):
        """Test continue finishes a paused fold."""
        manager = make_manager()
        manager.pending_operation.return_value = PendingOperation(
            repository_name='acme/widgets',
            kind=PENDING_FOLD,
            stack_id=1,
            original_branch='feat-b',
            paused_branch='feat-a',
            target_branch='feat-b',
        )
        manager.continue_fold.return_value = FoldResult(
            folded_branch='feat-b', target_branch='feat-a', completed=True
        )
        mock_manager_class.return_value = manager

        result = self.invoke(['continue'])

        assert result.exit_code == 0
        manager.continue_fold.assert_called_once()
        mock_orchestrator_class.return_value.continue_restack.assert_not_called()

    @patch('branchstack.cli.RebaseOrchestrator')
    @patch('branchstack.cli.StackManager')
    def test_continue_routes_to_restack(self, mock_manager_class, mock_orchestrator_class):
        """Test continue resumes a paused restack."""
        manager = make_manager()
        manager.pending_operation.return_value = PendingOperation(
            repository_name='acme/widgets',
            kind=PENDING_RESTACK,
            stack_id=1,
            original_branch='feat-b',
            paused_branch='feat-a',
            target_branch='main',
        )
        mock_manager_class.return_value = manager
        mock_orchestrator_class.return_value.continue_restack.return_value = RestackResult(
            state=RestackState.COMPLETED, rebased=['feat-a', 'feat-b']
        )

        result = self.invoke(['continue'])

        assert result.exit_code == 0
        assert 'Restack completed' in result.output
        manager.continue_fold.assert_not_called()

    @patch('branchstack.cli.RebaseOrchestrator')
    @patch('branchstack.cli.StackManager')
    def test_continue_nothing(self, mock_manager_class, mock_orchestrator_class):
        mock_manager_class.return_value = make_manager()
        mock_orchestrator_class.return_value.continue_restack.return_value = RestackResult(
            state=RestackState.NOTHING_TO_CONTINUE, message='No rebase in progress'
        )

        result = self.invoke(['continue'])

        assert result.exit_code == 0
        assert 'No rebase in progress' in result.output

    @patch('branchstack.cli.RebaseOrchestrator')
    @patch('branchstack.cli.StackManager')
    def test_abort_restack(self, mock_manager_class, mock_orchestrator_class):
        mock_manager_class.return_value = make_manager()
        mock_orchestrator_class.return_value.abort_restack.return_value = RestackResult(
            state=RestackState.ABORTED, message='Restack aborted'
        )

        result = self.invoke(['abort'])

        assert result.exit_code == 0
        assert 'Restack aborted' in result.output

    @patch('branchstack.cli.StackManager')
    def test_list_empty(self, mock_manager_class):
        manager = make_manager()
        manager.list_stacks.return_value = []
        mock_manager_class.return_value = manager

        result = self.invoke(['list'])

        assert result.exit_code == 0
        assert 'No stacks found' in result.output

    @patch('branchstack.cli.StackManager')
    def test_list_marks_current_branch(self, mock_manager_class):
        manager = make_manager()
        manager.list_stacks.return_value = [(make_summary(), 2)]
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        mock_manager_class.return_value = manager

        result = self.invoke(['list'])

        assert result.exit_code == 0
        assert 'stack/checkout' in result.output
        assert 'current' in result.output

    @patch('branchstack.cli.StackManager')
    def test_stacks_table(self, mock_manager_class):
        manager = make_manager()
        manager.list_stacks.return_value = [(make_summary(), 2), (make_summary(2, 'stack/other'), 0)]
        mock_manager_class.return_value = manager

        result = self.invoke(['stacks'])

        assert result.exit_code == 0
        assert 'stack/checkout' in result.output
        assert 'stack/other' in result.output

    @patch('branchstack.cli.StackManager')
    def test_delete_with_yes(self, mock_manager_class):
        manager = make_manager()
        manager.list_stacks.return_value = [(make_summary(), 2)]
        manager.delete_stacks.return_value = ['stack/checkout']
        mock_manager_class.return_value = manager

        result = self.invoke(['delete', '1', '--yes'])

        assert result.exit_code == 0
        manager.delete_stacks.assert_called_once_with([1])
        assert 'Deleted 1 stack' in result.output

    @patch('branchstack.cli.StackManager')
    def test_delete_unknown_id(self, mock_manager_class):
        manager = make_manager()
        manager.list_stacks.return_value = [(make_summary(), 2)]
        mock_manager_class.return_value = manager

        result = self.invoke(['delete', '7', '--yes'])

        assert result.exit_code == EXIT_PRECONDITION
        manager.delete_stacks.assert_not_called()

    @patch('branchstack.cli.StackManager')
    def test_up_at_top(self, mock_manager_class):
        manager = make_manager()
        manager.move_up.return_value = None
        mock_manager_class.return_value = manager

        result = self.invoke(['up'])

        assert result.exit_code == 0
        assert 'Already at the top' in result.output

    @patch('branchstack.cli.StackManager')
    def test_status_command(self, mock_manager_class):
        """Test status command."""
        manager = make_manager()
        manager.base_branches.return_value = ['main']
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        manager.git_manager.is_rebase_in_progress.return_value = False
        manager.git_manager.is_merge_in_progress.return_value = False
        manager.stack_for_branch.return_value = make_summary()
        mock_manager_class.return_value = manager

        result = self.invoke(['status'])

        assert result.exit_code == 0
        assert 'Repository Status' in result.output
        assert 'acme/widgets' in result.output

    @patch('branchstack.cli.StackManager')
    def test_fold_without_terminal_is_declined(self, mock_manager_class):
        """Test fold without --yes and without a terminal does not merge."""
        manager = make_manager()
        manager.downstream_branch.return_value = 'feat-a'
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        mock_manager_class.return_value = manager

        result = self.invoke(['fold'])

        assert result.exit_code == 0
        assert 'safe defaults' in result.output
        assert 'Fold cancelled' in result.output
        manager.fold.assert_not_called()

    @patch('branchstack.cli._interactive', return_value=True)
    @patch('branchstack.cli.StackManager')
    def test_fold_confirmed_at_terminal(self, mock_manager_class, _mock_interactive):
        manager = make_manager()
        manager.downstream_branch.return_value = 'feat-a'
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        manager.fold.return_value = FoldResult(folded_branch='feat-b', target_branch='feat-a', completed=True)
        mock_manager_class.return_value = manager

        result = self.invoke(['fold'], input='y\n')

        assert result.exit_code == 0
        manager.fold.assert_called_once_with('feat-b')

    @patch('branchstack.cli.StackManager')
    def test_checkout_named_branch(self, mock_manager_class):
        manager = make_manager()
        manager.checkout.return_value = True
        mock_manager_class.return_value = manager

        result = self.invoke(['checkout', 'feat-a'])

        assert result.exit_code == 0
        manager.checkout.assert_called_once_with('feat-a')
        assert 'Switched to branch feat-a' in result.output

    @patch('branchstack.cli.StackManager')
    def test_checkout_picker_without_terminal(self, mock_manager_class):
        manager = make_manager()
        manager.list_branches.return_value = {'stack/checkout': make_summary().branches}
        manager.base_branches.return_value = ['main']
        mock_manager_class.return_value = manager

        result = self.invoke(['checkout'])

        assert result.exit_code == 0
        assert 'No branch selected' in result.output
        manager.checkout.assert_not_called()

    @patch('branchstack.cli._interactive', return_value=True)
    @patch('branchstack.cli.StackManager')
    def test_checkout_picker_lists_top_of_stack_first(self, mock_manager_class, _mock_interactive):
        manager = make_manager()
        manager.list_branches.return_value = {'stack/checkout': make_summary().branches}
        manager.base_branches.return_value = ['main']
        manager.git_manager.get_current_branch.return_value = 'main'
        manager.checkout.return_value = True
        mock_manager_class.return_value = manager

        result = self.invoke(['checkout'], input='1\n')

        assert result.exit_code == 0
        assert '1. feat-b' in result.output
        assert '3. main' in result.output
        manager.checkout.assert_called_once_with('feat-b')

    @patch('branchstack.cli.StackManager')
    def test_modify_with_message(self, mock_manager_class):
        manager = make_manager()
        manager.modify.return_value = CommitInfo(hash='a1b2c3d4' * 5, message='add widget', author='Dev')
        mock_manager_class.return_value = manager

        result = self.invoke(['modify', '-m', 'add widget'])

        assert result.exit_code == 0
        manager.modify.assert_called_once_with('add widget', amend=False)
        assert 'Created commit a1b2c3d4' in result.output

    @patch('branchstack.cli.StackManager')
    def test_modify_amend(self, mock_manager_class):
        manager = make_manager()
        manager.modify.return_value = CommitInfo(hash='a1b2c3d4' * 5, message='add widget', author='Dev')
        mock_manager_class.return_value = manager

        result = self.invoke(['modify', '--amend'])

        assert result.exit_code == 0
        manager.modify.assert_called_once_with(None, amend=True)
        assert 'Amended commit' in result.output

    @patch('branchstack.cli.StackManager')
    def test_modify_without_message_or_terminal(self, mock_manager_class):
        manager = make_manager()
        manager.modify.side_effect = PreconditionError('A commit message is required unless amending')
        mock_manager_class.return_value = manager

        result = self.invoke(['modify'])

        assert result.exit_code == EXIT_PRECONDITION
        manager.modify.assert_called_once_with(None, amend=False)

    @patch('branchstack.cli.StackManager')
    def test_squash_command(self, mock_manager_class):
        manager = make_manager()
        manager.squash_branch.return_value = CommitInfo(hash='5' * 40, message='feat-b', author='Dev')
        mock_manager_class.return_value = manager

        result = self.invoke(['squash', '-m', 'feat-b'])

        assert result.exit_code == 0
        manager.squash_branch.assert_called_once_with('feat-b')
        assert 'Squashed into 55555555' in result.output

    @patch('branchstack.cli.StackManager')
    def test_mark_current_branch_merged(self, mock_manager_class):
        manager = make_manager()
        manager.git_manager.get_current_branch.return_value = 'feat-b'
        manager.set_branch_status.return_value = BranchEntry(
            id=2, name='feat-b', stack_id=1, position=1, status='merged'
        )
        mock_manager_class.return_value = manager

        result = self.invoke(['mark', 'merged'])

        assert result.exit_code == 0
        manager.set_branch_status.assert_called_once_with('feat-b', BranchStatus.MERGED)
        assert 'feat-b marked merged' in result.output

    def test_mark_rejects_unknown_status(self):
        result = self.invoke(['mark', 'shipped', 'feat-b'])

        assert result.exit_code == 2
