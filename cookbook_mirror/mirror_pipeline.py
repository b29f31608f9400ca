"""
Cookbook Mirror Pipeline for syncing cookbooks and their Gerrit project configuration.
"""

import logging
from contextlib import ExitStack
from enum import Enum
from typing import Dict, List, Optional

from cookbook_mirror.commands import CommandRunner, DryRunGate, SubprocessRunner
from cookbook_mirror.commit_message import render_commit_message
from cookbook_mirror.config_models import CookbookSpec
from cookbook_mirror.git_workspace import GitWorkspace
from cookbook_mirror.project_config import (
    PROJECT_CONFIG_FILE,
    MergeResult,
    apply_overrides,
    load_project_config,
    write_project_config,
)
from cookbook_mirror.workspace import scratch_directory, temporary_message_file


META_CONFIG_BRANCH = "meta/config"
META_CONFIG_REF = "refs/meta/config"
UPSTREAM_BRANCH = "upstream"
MASTER_BRANCH = "master"
GERRIT_REMOTE = "gerrit"


class MirrorStep(Enum):
    """Pipeline steps, in execution order."""

    CLONE_LOCAL = "clone-local"
    CONFIGURE_LOCAL = "configure-local"
    MERGE_PROJECT_CONFIG = "merge-project-config"
    WRITE_PROJECT_CONFIG = "write-project-config"
    COMMIT_LOCAL_CHANGE = "commit-local-change"
    PUSH_LOCAL_META_CONFIG = "push-local-meta-config"
    CLONE_SOURCE = "clone-source"
    ADD_GERRIT_REMOTE = "add-gerrit-remote"
    CREATE_UPSTREAM_BRANCH = "create-upstream-branch"
    PUSH_SOURCE_UPSTREAM = "push-source-upstream"
    FETCH_UPSTREAM_INTO_LOCAL = "fetch-upstream-into-local"
    REBASE_LOCAL_TO_MASTER = "rebase-local-to-master"
    PUSH_LOCAL_MASTER = "push-local-master"


def _resolved_url(cookbook: CookbookSpec, attribute: str) -> str:
    try:
        return getattr(cookbook, attribute)
    except ValueError:
        return ""


class CookbookResult:
    """What happened to one cookbook during a run."""

    def __init__(self, cookbook: CookbookSpec, dry_run: bool):
        self.cookbook = cookbook
        self.dry_run = dry_run
        self.success = False
        # A broken URL template is left empty here and fails its clone step
        self.local_url = _resolved_url(cookbook, "local_url")
        self.source_url = _resolved_url(cookbook, "source_url")
        self.failed_step: Optional[MirrorStep] = None
        self.error: Optional[Exception] = None
        self.merge: Optional[MergeResult] = None
        self.committed = False
        self.completed_steps: List[MirrorStep] = []

    def to_dict(self) -> Dict[str, object]:
        return {
            "cookbook": self.cookbook.name,
            "local_url": self.local_url,
            "source_url": self.source_url,
            "success": self.success,
            "dry_run": self.dry_run,
            "failed_step": self.failed_step.value if self.failed_step else None,
            "error": str(self.error) if self.error else None,
            "merged_sections": list(self.merge.merged_sections) if self.merge else [],
            "skipped_sections": list(self.merge.skipped_sections) if self.merge else [],
            "committed": self.committed,
        }


class MirrorStepError(Exception):
    """A cookbook's pipeline stopped at a step; wraps the underlying error."""

    def __init__(self, cookbook: str, step: MirrorStep, cause: Exception,
                 result: Optional[CookbookResult] = None):
        self.cookbook = cookbook
        self.step = step
        self.cause = cause
        self.result = result
        super().__init__(f"Cookbook '{cookbook}' failed at step '{step.value}': {cause}")


class CookbookMirrorPipeline:
    """Mirrors cookbooks into Gerrit and syncs their project configuration."""

    def __init__(self, config, runner: Optional[CommandRunner] = None,
                 dry_run: Optional[bool] = None):
        """Initialize the pipeline.

        Args:
            config: Loaded MirrorConfig
            runner: CommandRunner for git commands (defaults to SubprocessRunner)
            dry_run: Overrides the configuration's debug flag when given
        """
        self.config = config
        self.runner = runner or SubprocessRunner()
        self.dry_run = config.debug if dry_run is None else bool(dry_run)
        self.gate = DryRunGate(self.runner, self.dry_run)
        self.logger = logging.getLogger(__name__)

    def run(self, cookbook_names: Optional[List[str]] = None) -> Dict[str, object]:
        """Mirror every configured cookbook, one after the other.

        A failing cookbook is reported and the run moves on to the next one.

        Args:
            cookbook_names: Only process these cookbooks when given

        Returns:
            Summary dictionary with per-cookbook results
        """
        cookbooks = self.config.get_cookbooks(cookbook_names)

        self.logger.info("=" * 80)
        self.logger.info(f"Mirroring {len(cookbooks)} cookbook(s)")
        if self.dry_run:
            self.logger.info("MODE=plan: pushes will be simulated (dry-run)")
        self.logger.info("=" * 80)

        results = []
        for index, cookbook in enumerate(cookbooks, 1):
            self.logger.info(f"[{index}/{len(cookbooks)}] Cookbook: {cookbook.name}")
            try:
                result = self.mirror_cookbook(cookbook)
            except MirrorStepError as e:
                self.logger.error(str(e))
                result = e.result
            results.append(result)

        succeeded = sum(1 for result in results if result.success)
        summary = {
            "cookbooks_found": len(cookbooks),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "dry_run": self.dry_run,
            "simulated_pushes": [" ".join(args) for args in self.gate.simulated],
            "results": [result.to_dict() for result in results],
        }

        self.logger.info("=" * 80)
        self.logger.info("COOKBOOK MIRROR SUMMARY")
        self.logger.info("=" * 80)
        for result in results:
            if result.success:
                self.logger.info(f"  {result.cookbook.name}: ✓ Success")
            else:
                self.logger.info(
                    f"  {result.cookbook.name}: ✗ Failed at {result.failed_step.value} ({result.error})"
                )
        self.logger.info(f"Succeeded: {summary['succeeded']}/{summary['cookbooks_found']}")
        self.logger.info("=" * 80)

        return summary

    def mirror_cookbook(self, cookbook: CookbookSpec) -> CookbookResult:
        """Run the full mirror sequence for one cookbook.

        Both scratch directories are removed before this returns or raises.

        Raises:
            MirrorStepError: If any step fails; carries the partial result
        """
        result = CookbookResult(cookbook, self.dry_run)
        step = MirrorStep.CLONE_LOCAL

        try:
            with ExitStack() as stack:
                prefix = cookbook.name.replace("/", "_")
                local_path = stack.enter_context(scratch_directory(f"{prefix}-local-"))
                source_path = stack.enter_context(scratch_directory(f"{prefix}-source-"))
                local = GitWorkspace(local_path, self.runner, self.gate)
                source = GitWorkspace(source_path, self.runner, self.gate)

                for step, action in self._steps(cookbook, local, source, result):
                    action()
                    result.completed_steps.append(step)
        except Exception as e:
            result.failed_step = step
            result.error = e
            raise MirrorStepError(cookbook.name, step, e, result=result) from e

        result.success = True
        self.logger.info(f"Cookbook '{cookbook.name}' mirrored successfully")
        return result

    def _steps(self, cookbook: CookbookSpec, local: GitWorkspace,
               source: GitWorkspace, result: CookbookResult):
        """Yield (step, action) pairs in pipeline order."""
        project_config = {}

        def merge():
            path = local.path / PROJECT_CONFIG_FILE
            project_config["parser"] = load_project_config(path)
            result.merge = apply_overrides(
                project_config["parser"], self.config.project_config_overrides, MergeResult(path)
            )
            if result.merge.skipped_sections:
                self.logger.info(
                    f"Sections not declared in {PROJECT_CONFIG_FILE}, skipped: "
                    f"{', '.join(result.merge.skipped_sections)}"
                )

        yield MirrorStep.CLONE_LOCAL, lambda: local.clone(cookbook.local_url)
        yield MirrorStep.CONFIGURE_LOCAL, lambda: self._checkout_meta_config(local)
        yield MirrorStep.MERGE_PROJECT_CONFIG, merge
        yield MirrorStep.WRITE_PROJECT_CONFIG, lambda: write_project_config(
            project_config["parser"], result.merge.path)
        yield MirrorStep.COMMIT_LOCAL_CHANGE, lambda: self._commit_local_change(local, result)
        yield MirrorStep.PUSH_LOCAL_META_CONFIG, lambda: local.push(
            "origin", f"{META_CONFIG_BRANCH}:{META_CONFIG_REF}")

        yield MirrorStep.CLONE_SOURCE, lambda: source.clone(cookbook.source_url)
        yield MirrorStep.ADD_GERRIT_REMOTE, lambda: source.add_remote(GERRIT_REMOTE, cookbook.local_url)
        yield MirrorStep.CREATE_UPSTREAM_BRANCH, lambda: source.create_branch(UPSTREAM_BRANCH)
        yield MirrorStep.PUSH_SOURCE_UPSTREAM, lambda: source.push(GERRIT_REMOTE, UPSTREAM_BRANCH)

        yield MirrorStep.FETCH_UPSTREAM_INTO_LOCAL, lambda: self._fetch_upstream(local, source)
        yield MirrorStep.REBASE_LOCAL_TO_MASTER, lambda: local.create_branch(MASTER_BRANCH)
        yield MirrorStep.PUSH_LOCAL_MASTER, lambda: local.push("origin", MASTER_BRANCH)

    def _checkout_meta_config(self, local: GitWorkspace):
        local.fetch("origin", f"+{META_CONFIG_REF}:refs/remotes/origin/{META_CONFIG_BRANCH}")
        local.checkout(META_CONFIG_BRANCH)

    def _commit_local_change(self, local: GitWorkspace, result: CookbookResult):
        """Commit the merged project.config; an unchanged tree is not an error."""
        message = render_commit_message(self.config)
        if not local.has_changes():
            self.logger.info(f"Nothing to commit in {META_CONFIG_BRANCH}, project config unchanged")
            return

        with temporary_message_file(message) as message_file:
            local.commit_all(message_file)
        result.committed = True

    def _fetch_upstream(self, local: GitWorkspace, source: GitWorkspace):
        """Bring the upstream branch into the local workspace.

        In dry-run mode the upstream push was only simulated, so the branch
        is taken straight from the source workspace instead of Gerrit.
        """
        remote = str(source.path) if self.dry_run else "origin"
        local.fetch(remote, f"+{UPSTREAM_BRANCH}:refs/remotes/origin/{UPSTREAM_BRANCH}")
        local.checkout(UPSTREAM_BRANCH)
