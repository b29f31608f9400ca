"""Shared fixtures for the cookbook mirror tests."""

from pathlib import Path

import pytest
import yaml

from cookbook_mirror.commands import CommandResult, CommandRunner
from cookbook_mirror.config_manager import DEBUG_ENV_VAR, MirrorConfig


SAMPLE_PROJECT_CONFIG = """\
[project]
\tdescription = Apache cookbook
[access "refs/heads/*"]
\tread = group Registered Users
\tsubmit-type = FAST_FORWARD_ONLY
[receive]
\trequireChangeId = true
"""


class FakeGitRunner(CommandRunner):
    """Records git invocations and fakes just enough of their effects.

    Checking out meta/config drops a project.config file into the working
    directory. Any git subcommand listed in `failures` exits non-zero.
    """

    def __init__(self, project_config: str = SAMPLE_PROJECT_CONFIG, status_output: str = None):
        self.calls = []
        self.project_config = project_config
        self.status_output = status_output
        self.failures = {}
        self.commit_messages = []
        self.seen_dirs = set()

    def subcommands(self):
        return [args[1] for args, _ in self.calls]

    def calls_for(self, subcommand):
        return [(args, cwd) for args, cwd in self.calls if args[1] == subcommand]

    def run(self, args, cwd=None):
        args = [str(arg) for arg in args]
        self.calls.append((args, cwd))
        subcommand = args[1]

        if subcommand == "clone":
            self.seen_dirs.add(Path(args[-1]))
        elif cwd is not None:
            self.seen_dirs.add(Path(cwd))

        if subcommand in self.failures:
            returncode, errors = self.failures[subcommand]
            return CommandResult(args, returncode, errors=errors)

        if subcommand == "checkout" and args[-1] == "meta/config" and self.project_config is not None:
            (Path(cwd) / "project.config").write_text(self.project_config, encoding="utf-8")
        if subcommand == "status":
            if self.status_output is not None:
                return CommandResult(args, 0, self.status_output)
            changed = (Path(cwd) / "project.config").exists()
            return CommandResult(args, 0, " M project.config\n" if changed else "")
        if subcommand == "commit":
            message_file = Path(args[args.index("--file") + 1])
            self.commit_messages.append(message_file.read_text(encoding="utf-8"))
        return CommandResult(args, 0, "")


@pytest.fixture(autouse=True)
def clean_debug_env(monkeypatch):
    monkeypatch.delenv(DEBUG_ENV_VAR, raising=False)


@pytest.fixture
def fake_runner():
    return FakeGitRunner()


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config document and load it."""
    def _write(data, name="config.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return MirrorConfig(str(path))
    return _write


@pytest.fixture
def apache_config(write_config):
    return write_config({
        "default": {
            "debug": True,
            "gerrit": {
                "project_config": {
                    'access "refs/heads/*"': {"submit-type": "MERGE_IF_NECESSARY"},
                    'access "refs/tags/*"': {"push": "group Release Managers"},
                },
            },
        },
        "cookbooks": {
            "apache": {
                "local_url": "ssh://gerrit/%s",
                "source_url": "https://github.com/chef-cookbooks/%s.git",
            },
        },
    })
