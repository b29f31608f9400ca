"""
External command execution and the dry-run gate.

Commands are always argument lists, never shell strings. Only commands that
change remote state (pushes) go through the DryRunGate; everything else runs
unconditionally.
"""

import logging
import os
import subprocess
from typing import List, Optional, Sequence


class CommandExecutionError(Exception):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = "", errors: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        self.errors = errors
        message = f"Command '{' '.join(self.args_list)}' failed with exit code {returncode}"
        details = (errors or output).strip()
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class CommandResult:
    """Exit status and captured output of one command."""

    def __init__(self, args: Sequence[str], returncode: int, output: str = "", errors: str = ""):
        self.args = list(args)
        self.returncode = returncode
        self.output = output
        self.errors = errors

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def check(self) -> "CommandResult":
        """Return self, or raise CommandExecutionError if the command failed."""
        if not self.succeeded:
            raise CommandExecutionError(self.args, self.returncode, self.output, self.errors)
        return self

    def __repr__(self):
        return f"CommandResult({self.args!r}, returncode={self.returncode})"


class CommandRunner:
    """Runs an external command in a working directory."""

    def run(self, args: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        raise NotImplementedError


class SubprocessRunner(CommandRunner):
    """CommandRunner backed by subprocess.run."""

    def __init__(self, env: Optional[dict] = None):
        self.logger = logging.getLogger(__name__)
        self.env = dict(os.environ if env is None else env)
        # Never block on a credential prompt
        self.env.setdefault("GIT_TERMINAL_PROMPT", "0")

    def run(self, args: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        args = [str(arg) for arg in args]
        self.logger.debug(f"Running command: {' '.join(args)} (cwd={cwd})")
        if cwd is not None and not os.path.isdir(cwd):
            self.logger.error(f"Working directory does not exist: {cwd}")
            return CommandResult(args, 126, errors=f"Working directory does not exist: {cwd}")

        try:
            completed = subprocess.run(
                args,
                cwd=None if cwd is None else str(cwd),
                env=self.env,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            self.logger.error(f"Command not found: {e.filename or args[0]}")
            return CommandResult(args, 127, errors=str(e))

        result = CommandResult(args, completed.returncode, completed.stdout or "", completed.stderr or "")
        if result.output:
            self.logger.debug(f"stdout: {result.output.strip()}")
        if result.errors:
            self.logger.debug(f"stderr: {result.errors.strip()}")
        if not result.succeeded:
            self.logger.debug(f"Command exited with {result.returncode}")
        return result


class DryRunGate:
    """Guards commands that mutate shared or remote state.

    With dry_run enabled the command is echoed instead of executed and the
    call always succeeds. Otherwise the command runs and a failure raises
    CommandExecutionError.
    """

    def __init__(self, runner: CommandRunner, dry_run: bool):
        self.logger = logging.getLogger(__name__)
        self.runner = runner
        self.dry_run = bool(dry_run)
        self.simulated: List[List[str]] = []

    def execute(self, args: Sequence[str], cwd: Optional[str] = None) -> CommandResult:
        args = [str(arg) for arg in args]
        if self.dry_run:
            command_line = " ".join(args)
            self.simulated.append(args)
            self.logger.info(f"[DRY-RUN] {command_line}")
            return CommandResult(args, 0, command_line)

        return self.runner.run(args, cwd=cwd).check()
