"""Sequential step execution.

This module handles:
- Running external tool invocations with an explicit environment
- Performing the filesystem steps (mkdir, copy, remove, archive)
- Aborting on the first failure with the tool's exit code

Child output is not captured: builds stream straight to the terminal.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable, Mapping

from ringrtc_build.artifacts import compute_file_hash, pack_archive
from ringrtc_build.errors import (
    ArtifactNotFoundError,
    ExternalToolFailureError,
    FileOperationError,
    MissingDependencyError,
)
from ringrtc_build.steps import (
    CopyFile,
    Invocation,
    MakeDirs,
    PackArchive,
    RemoveTree,
    Step,
)

logger = logging.getLogger(__name__)


def run_invocation(invocation: Invocation, base_env: Mapping[str, str]) -> None:
    """Run one external tool and wait for it.

    Args:
        invocation: The invocation to run.
        base_env: Environment the invocation's overrides are layered on.

    Raises:
        MissingDependencyError: If the tool or working directory is missing.
        ExternalToolFailureError: If the tool exits non-zero.
    """
    cmd_str = invocation.command
    if invocation.description:
        logger.info("%s", invocation.description.capitalize())
    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", invocation.cwd)
    for key, value in invocation.env.items():
        logger.debug("  %s=%s", key, value)

    if not invocation.cwd.is_dir():
        raise MissingDependencyError(
            str(invocation.cwd), hint="working directory does not exist"
        )

    env = dict(base_env)
    env.update(invocation.env)

    try:
        result = subprocess.run(
            list(invocation.argv),
            cwd=invocation.cwd,
            env=env,
            check=False,
        )
    except OSError as e:
        logger.error("Failed to execute %s: %s", invocation.argv[0], e)
        raise MissingDependencyError(invocation.argv[0]) from e

    if result.returncode != 0:
        logger.error("Command failed with exit code %d: %s", result.returncode, cmd_str)
        raise ExternalToolFailureError(cmd_str, result.returncode)


def run_step(step: Step, base_env: Mapping[str, str]) -> None:
    """Execute a single step.

    Raises:
        MissingDependencyError: If a tool or working directory is missing.
        ExternalToolFailureError: If a tool exits non-zero.
        ArtifactNotFoundError: If a file to copy or pack was not produced.
        FileOperationError: If a filesystem step fails.
    """
    if isinstance(step, Invocation):
        run_invocation(step, base_env)
        return
    if not isinstance(step, (MakeDirs, CopyFile, RemoveTree, PackArchive)):
        raise TypeError(f"Unknown step: {step!r}")

    try:
        _run_file_step(step)
    except OSError as e:
        logger.error("Failed to %s: %s", step.describe(), e)
        raise FileOperationError(step.describe(), e) from e


def _run_file_step(step: MakeDirs | CopyFile | RemoveTree | PackArchive) -> None:
    if isinstance(step, MakeDirs):
        step.path.mkdir(parents=True, exist_ok=True)
    elif isinstance(step, CopyFile):
        if not step.source.is_file():
            raise ArtifactNotFoundError(f"Build output not found: {step.source}")
        logger.info("Copying %s to %s", step.source, step.destination)
        shutil.copyfile(step.source, step.destination)
    elif isinstance(step, RemoveTree):
        if step.path.exists():
            logger.info("Removing %s", step.path)
            shutil.rmtree(step.path)
    else:
        archive = pack_archive(
            step.archive, step.root, step.library_candidates, step.members
        )
        logger.info("%s  %s", compute_file_hash(archive), archive.name)


def run_steps(steps: Iterable[Step], base_env: Mapping[str, str]) -> None:
    """Execute steps in order, stopping at the first failure."""
    for step in steps:
        run_step(step, base_env)


__all__ = ["run_invocation", "run_step", "run_steps"]
