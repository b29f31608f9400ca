"""
Git operations on a single working directory.
"""

import logging
from pathlib import Path
from typing import List, Optional

from cookbook_mirror.commands import CommandResult, CommandRunner, DryRunGate


class GitWorkspace:
    """Runs git commands inside one scratch directory.

    Local commands (clone, fetch, checkout, commit) always execute. Pushes
    go through the DryRunGate.
    """

    def __init__(self, path, runner: CommandRunner, gate: DryRunGate, git: str = "git"):
        """Initialize the workspace.

        Args:
            path: Directory the repository is (or will be) cloned into
            runner: Runner used for every local git command
            gate: Dry-run gate used for pushes
            git: Name or path of the git executable
        """
        self.path = Path(path)
        self.runner = runner
        self.gate = gate
        self.git = git
        self.logger = logging.getLogger(__name__)

    def _run(self, *args: str, cwd: Optional[Path] = None) -> CommandResult:
        command = [self.git, *args]
        return self.runner.run(command, cwd=str(cwd or self.path)).check()

    def clone(self, url: str) -> CommandResult:
        """Clone url into the workspace directory."""
        self.logger.info(f"Cloning {url or '<empty url>'} into {self.path}")
        return self._run("clone", url, str(self.path), cwd=self.path.parent)

    def fetch(self, remote: str, refspec: str) -> CommandResult:
        return self._run("fetch", remote, refspec)

    def checkout(self, ref: str) -> CommandResult:
        return self._run("checkout", ref)

    def create_branch(self, branch: str) -> CommandResult:
        """Point branch at the current HEAD and check it out, replacing any existing one."""
        return self._run("checkout", "-B", branch)

    def add_remote(self, name: str, url: str) -> CommandResult:
        return self._run("remote", "add", name, url)

    def changed_files(self) -> List[str]:
        """Tracked files with uncommitted changes, as reported by git status."""
        result = self._run("status", "--porcelain", "--untracked-files=no")
        return [line for line in result.output.splitlines() if line.strip()]

    def has_changes(self) -> bool:
        return bool(self.changed_files())

    def commit_all(self, message_file) -> CommandResult:
        """Commit every tracked change using the message stored in message_file."""
        return self._run("commit", "--all", "--file", str(message_file))

    def push(self, remote: str, refspec: str) -> CommandResult:
        """Push refspec to remote through the dry-run gate."""
        self.logger.info(f"Pushing {refspec} to {remote} from {self.path}")
        return self.gate.execute([self.git, "push", remote, refspec], cwd=str(self.path))
