"""
Git repository management and operations.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from git import InvalidGitRepositoryError, Repo
from git.exc import GitCommandError

from .config import DEFAULT_BASE_BRANCH_CANDIDATES
from .models import CommitInfo, GitOutcome, GitRepositoryError


logger = logging.getLogger(__name__)

# https://github.com/owner/repo.git, git@github.com:owner/repo.git
_REMOTE_NAME_RE = re.compile(r"[/:]([^/]+?)/([^/]+?)(?:\.git)?/?$")


class GitManager:
    """Blocking gateway over the git executable for one repository."""

    def __init__(self, repo_path: Optional[Path] = None) -> None:
        """Initialize Git manager with optional repository path."""
        self.repo_path = (repo_path or Path.cwd()).resolve()
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """Get the Git repository instance."""
        if self._repo is None:
            self._repo = self._discover_repository()
        return self._repo

    def _discover_repository(self) -> Repo:
        """Discover the Git repository from current or specified path."""
        logger.debug(f"Discovering repository in: {self.repo_path}")
        try:
            repo = Repo(self.repo_path, search_parent_directories=True)
        except InvalidGitRepositoryError as e:
            raise GitRepositoryError(
                f"No Git repository found at {self.repo_path} or any parent directory"
            ) from e
        logger.info(f"Found Git repository at: {repo.working_dir}")
        return repo

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_dir)

    # --- Identity ---
    def get_repository_name(self) -> str:
        """Return ``owner/name`` parsed from remote.origin.url.

        Repositories without an origin remote fall back to ``local/<directory>``.
        """
        try:
            url = self.repo.git.config("--get", "remote.origin.url").strip()
        except GitCommandError:
            url = ""
        if not url:
            name = f"local/{self.working_dir.name}"
            logger.debug(f"No origin remote; using repository name {name}")
            return name
        match = _REMOTE_NAME_RE.search(url)
        if not match:
            raise GitRepositoryError(f"Could not parse repository name from remote URL: {url}")
        return f"{match.group(1)}/{match.group(2)}"

    def get_default_base_branch(self) -> str:
        """Guess the trunk branch: the current branch's upstream, else main/master."""
        try:
            upstream = self.repo.git.rev_parse("--abbrev-ref", "--symbolic-full-name", "@{u}").strip()
            if upstream:
                # origin/main -> main
                return upstream.split("/", 1)[-1]
        except GitCommandError:
            logger.debug("Current branch has no upstream")
        local = set(self.list_local_branches())
        for candidate in DEFAULT_BASE_BRANCH_CANDIDATES:
            if candidate in local:
                return candidate
        return "main"

    # --- Branches ---
    def get_current_branch(self) -> str:
        """Get the current branch name."""
        try:
            return self.repo.active_branch.name
        except TypeError as e:
            # GitPython raises TypeError on a detached HEAD
            logger.error(f"Error getting current branch: {e}")
            raise GitRepositoryError(f"Could not determine current branch: {e}") from e

    def list_local_branches(self) -> List[str]:
        """List local branch names (full names, including slashes)."""
        return [h.name for h in self.repo.heads]

    def branch_exists(self, branch_name: str) -> bool:
        return branch_name in self.list_local_branches()

    def checkout_branch(self, branch_name: str) -> None:
        """Checkout a specific branch."""
        try:
            self.repo.git.checkout(branch_name)
            logger.info(f"Checked out branch: {branch_name}")
        except GitCommandError as e:
            logger.error(f"Error checking out branch {branch_name}: {e}")
            raise GitRepositoryError(f"Failed to checkout branch {branch_name}: {e}") from e

    def create_branch(self, branch_name: str) -> None:
        """Create ``branch_name`` at HEAD and check it out."""
        try:
            self.repo.git.checkout("-b", branch_name)
            logger.info(f"Created branch: {branch_name}")
        except GitCommandError as e:
            logger.error(f"Error creating branch {branch_name}: {e}")
            raise GitRepositoryError(f"Failed to create branch {branch_name}: {e}") from e

    def get_latest_commit(self, ref: str = "HEAD") -> CommitInfo:
        try:
            commit = self.repo.commit(ref)
        except (GitCommandError, ValueError) as e:
            raise GitRepositoryError(f"Failed to read commit {ref}: {e}") from e
        return CommitInfo(
            hash=commit.hexsha,
            message=commit.summary.strip() if commit.summary else "",
            author=commit.author.name or "",
        )

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """True when ``ancestor`` is reachable from ``descendant``."""
        try:
            self.repo.git.merge_base("--is-ancestor", ancestor, descendant)
        except GitCommandError as e:
            # Exit status 1 means "not an ancestor"; anything else is a real failure
            if e.status == 1:
                return False
            logger.error(f"Error comparing {ancestor} and {descendant}: {e}")
            raise GitRepositoryError(f"Failed to compare {ancestor} and {descendant}: {e}") from e
        return True

    def get_merge_base(self, first: str, second: str = "HEAD") -> str:
        try:
            return self.repo.git.merge_base(first, second).strip()
        except GitCommandError as e:
            logger.error(f"Error finding merge base of {first} and {second}: {e}")
            raise GitRepositoryError(f"No common ancestor of {first} and {second}: {e}") from e

    def get_commits_since(self, base: str, ref: str = "HEAD") -> List[str]:
        """Hashes of the commits in ``base..ref``, oldest first."""
        try:
            output = self.repo.git.rev_list("--reverse", f"{base}..{ref}")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to list commits since {base}: {e}") from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    def get_commit_message(self, ref: str = "HEAD") -> str:
        try:
            return self.repo.commit(ref).message.strip()
        except (GitCommandError, ValueError) as e:
            raise GitRepositoryError(f"Failed to read commit {ref}: {e}") from e

    # --- Commits ---
    def has_changes_to_commit(self) -> bool:
        """Staged, unstaged or untracked changes that ``commit_all`` would pick up."""
        return self.repo.is_dirty(index=True, working_tree=True, untracked_files=True)

    def commit_all(self, message: Optional[str] = None, amend: bool = False) -> CommitInfo:
        """Stage every change and commit it, or fold it into HEAD with ``amend``.

        Amending without a message keeps the existing one.
        """
        try:
            self.repo.git.add("--all")
            args = ["--amend"] if amend else []
            args += ["-m", message] if message else ["--no-edit"]
            self.repo.git.commit(*args)
        except GitCommandError as e:
            logger.error(f"Error committing changes: {e}")
            raise GitRepositoryError(f"Failed to commit changes: {e}") from e
        commit = self.get_latest_commit()
        logger.info(f"{'Amended' if amend else 'Created'} commit {commit.hash[:8]}")
        return commit

    def squash_commits(self, base: str, message: str) -> CommitInfo:
        """Replace every commit after ``base`` on the current branch with one commit."""
        try:
            self.repo.git.reset("--soft", base)
            self.repo.git.commit("-m", message)
        except GitCommandError as e:
            logger.error(f"Error squashing commits onto {base}: {e}")
            raise GitRepositoryError(f"Failed to squash commits: {e}") from e
        commit = self.get_latest_commit()
        logger.info(f"Squashed commits after {base[:8]} into {commit.hash[:8]}")
        return commit

    def get_commit_history(self, ref: str = "HEAD") -> List[str]:
        """Return ``"<hash> (<decorations>)"`` lines for ``ref``, newest first.

        Only local branch heads are shown as decorations.
        """
        try:
            output = self.repo.git.log(
                "--decorate=short",
                "--decorate-refs=refs/heads/",
                "--pretty=format:%H%d",
                ref,
            )
        except GitCommandError as e:
            logger.error(f"Error reading history of {ref}: {e}")
            raise GitRepositoryError(f"Failed to read commit history: {e}") from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    # --- Rebase ---
    def rebase_branch(self, source: str, target: str) -> GitOutcome:
        """Rebase ``source`` onto ``target`` (checks out ``source``).

        A failure that leaves unmerged paths or a rebase in progress is
        returned as a conflict; any other failure raises GitRepositoryError.
        """
        logger.debug(f"Called 'git rebase {target} {source}' in {self.repo.working_dir}")
        try:
            self.repo.git.rebase(target, source)
        except GitCommandError as e:
            return self._conflict_or_raise(e, self.is_rebase_in_progress(), f"Rebase of {source} onto {target}")
        logger.info(f"Rebased {source} onto {target}")
        return GitOutcome(success=True)

    def continue_rebase(self) -> GitOutcome:
        """Continue a rebase after conflicts are resolved."""
        try:
            # Avoid interactive editor prompt
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.rebase("--continue")
        except GitCommandError as e:
            return self._conflict_or_raise(e, self.is_rebase_in_progress(), "Rebase continue")
        logger.info("Rebase continued successfully")
        return GitOutcome(success=True)

    def abort_rebase(self) -> None:
        """Abort a rebase operation."""
        try:
            self.repo.git.rebase("--abort")
            logger.info("Rebase aborted successfully")
        except GitCommandError as e:
            logger.error(f"Failed to abort rebase: {e}")
            raise GitRepositoryError(f"Failed to abort rebase: {e}") from e

    def is_rebase_in_progress(self) -> bool:
        """Check if a rebase is currently in progress."""
        git_dir = Path(self.repo.git_dir)
        return any((git_dir / name).exists() for name in ("rebase-merge", "rebase-apply"))

    def get_rebasing_branch(self) -> Optional[str]:
        """Name of the branch being rebased while HEAD is detached, if any."""
        git_dir = Path(self.repo.git_dir)
        for name in ("rebase-merge", "rebase-apply"):
            head_name = git_dir / name / "head-name"
            if head_name.exists():
                ref = head_name.read_text(encoding="utf-8").strip()
                return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        return None

    # --- Merge ---
    def merge_branch(self, source: str) -> GitOutcome:
        """Merge ``source`` into the checked out branch."""
        try:
            self.repo.git.merge("--no-edit", source)
        except GitCommandError as e:
            return self._conflict_or_raise(e, self.is_merge_in_progress(), f"Merge of {source}")
        logger.info(f"Merged {source}")
        return GitOutcome(success=True)

    def is_merge_in_progress(self) -> bool:
        return (Path(self.repo.git_dir) / "MERGE_HEAD").exists()

    def commit_merge(self) -> None:
        """Conclude a merge whose conflicts have been resolved and staged."""
        try:
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.commit("--no-edit")
            logger.info("Merge committed")
        except GitCommandError as e:
            logger.error(f"Failed to commit merge: {e}")
            raise GitRepositoryError(f"Failed to commit merge: {e}") from e

    def abort_merge(self) -> None:
        try:
            self.repo.git.merge("--abort")
            logger.info("Merge aborted")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to abort merge: {e}") from e

    # --- Working tree ---
    def has_uncommitted_changes(self) -> bool:
        """Return True if there are staged or unstaged changes (untracked ignored)."""
        return self.repo.is_dirty(index=True, working_tree=True, untracked_files=False)

    def get_conflict_files(self) -> List[str]:
        """Return repo-relative paths with unresolved merges."""
        try:
            output = self.repo.git.diff("--name-only", "--diff-filter=U")
        except GitCommandError as e:
            logger.error(f"Error getting conflict files: {e}")
            raise GitRepositoryError(f"Failed to list conflicting files: {e}") from e
        return [f.strip() for f in output.splitlines() if f.strip()]

    def _conflict_or_raise(self, error: GitCommandError, in_progress: bool, action: str) -> GitOutcome:
        conflict_files = self.get_conflict_files()
        if conflict_files or in_progress:
            logger.warning(f"{action} stopped with conflicts in files: {conflict_files}")
            return GitOutcome(success=False, conflicts=conflict_files)
        logger.error(f"{action} failed: {error}")
        raise GitRepositoryError(f"{action} failed: {error}") from error
