"""Build variant orchestration.

Turns a BuildRequest and a HostEnvironment into an ordered plan of phases
and runs it:

1. Resolve the target architecture (request, then TARGET_ARCH, then host).
2. Match the host toolchain identity against the known platforms.
3. Plan the WebRTC phase (scope all / webrtc-only).
4. Plan the addon phase (scope all / ringrtc-only), always after WebRTC
   since the addon links against it.

Clean mode is separate and never plans a build phase.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping

from ringrtc_build.addon import plan_addon_phase
from ringrtc_build.artifacts import ADDON_DIR, describe_outputs
from ringrtc_build.config import Settings
from ringrtc_build.errors import InvalidArgumentsError
from ringrtc_build.platforms import (
    detect_toolchain_triple,
    host_arch,
    profile_for_triple,
    resolve_arch,
)
from ringrtc_build.runner import run_steps
from ringrtc_build.steps import Invocation, Phase, RemoveTree
from ringrtc_build.toolchain import read_project_version, read_webrtc_version, require_tool
from ringrtc_build.types import (
    ArchSpec,
    BuildRequest,
    BuildScope,
    BuildType,
    HostEnvironment,
    OutputArtifact,
    PlatformProfile,
)
from ringrtc_build.webrtc import plan_webrtc_phase

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"


def build_request(
    *,
    debug: bool = False,
    release: bool = False,
    webrtc_only: bool = False,
    ringrtc_only: bool = False,
    webrtc_tests: bool = False,
    archive_webrtc: bool = False,
    test_adm: bool = False,
    build_for_simulator: bool = False,
    target_arch: str | None = None,
) -> BuildRequest:
    """Validate raw option flags and build a BuildRequest.

    Raises:
        InvalidArgumentsError: For conflicting combinations.
    """
    if debug and release:
        raise InvalidArgumentsError("--debug and --release are mutually exclusive")
    if webrtc_only and ringrtc_only:
        raise InvalidArgumentsError(
            "--webrtc-only and --ringrtc-only are mutually exclusive"
        )
    if archive_webrtc and ringrtc_only:
        raise InvalidArgumentsError(
            "--archive-webrtc requires the WebRTC build; it cannot be used with --ringrtc-only"
        )

    scope = BuildScope.ALL
    if webrtc_only:
        scope = BuildScope.WEBRTC_ONLY
    elif ringrtc_only:
        scope = BuildScope.RINGRTC_ONLY

    return BuildRequest(
        target_arch=target_arch,
        build_type=BuildType.RELEASE if release else BuildType.DEBUG,
        scope=scope,
        archive_webrtc=archive_webrtc,
        test_adm=test_adm,
        build_for_simulator=build_for_simulator,
        include_webrtc_tests=webrtc_tests,
    )


def detect_host_environment(
    settings: Settings,
    environ: Mapping[str, str] | None = None,
    toolchain_triple: str | None = None,
) -> HostEnvironment:
    """Capture the host environment for a build run.

    Args:
        settings: Effective settings.
        environ: Environment passed to child processes (default: os.environ).
        toolchain_triple: Host triple; detected with rustc when None.

    Raises:
        MissingDependencyError: If rustc is needed and missing.
    """
    if toolchain_triple is None:
        toolchain_triple = detect_toolchain_triple()

    project_root = settings.project_root
    project_version = settings.project_version or read_project_version(project_root)
    webrtc_version = settings.webrtc_version or read_webrtc_version(project_root)
    if project_version is None:
        logger.debug("No project version found; using %r", UNKNOWN_VERSION)
    if webrtc_version is None:
        logger.debug("No WebRTC version found; using %r", UNKNOWN_VERSION)

    return HostEnvironment(
        toolchain_triple=toolchain_triple,
        host_arch=host_arch(),
        project_root=project_root,
        output_dir=settings.resolved_output_dir(),
        webrtc_src_dir=settings.resolved_webrtc_src_dir(),
        cargo_target_dir=settings.resolved_cargo_target_dir(),
        project_version=project_version or UNKNOWN_VERSION,
        webrtc_version=webrtc_version or UNKNOWN_VERSION,
        target_arch=settings.target_arch,
        host_platform=settings.host_platform,
        rustflags=settings.rustflags,
        base_env=dict(os.environ if environ is None else environ),
    )


def resolve_target(request: BuildRequest, host: HostEnvironment) -> tuple[ArchSpec, PlatformProfile]:
    """Resolve the architecture, then the platform profile.

    Raises:
        UnsupportedArchitectureError: For an unrecognized architecture.
        UnknownPlatformError: For an unrecognized toolchain identity.
    """
    arch = resolve_arch(request.target_arch or host.target_arch or host.host_arch)
    profile = profile_for_triple(host.toolchain_triple, arch)
    logger.info(
        "Target: %s/%s (%s)", profile.platform.value, arch.name, profile.target_triple
    )
    return arch, profile


def plan(request: BuildRequest, host: HostEnvironment) -> list[Phase]:
    """Plan the phases for a build request, in execution order."""
    arch, profile = resolve_target(request, host)
    phases: list[Phase] = []
    if request.scope.includes_webrtc:
        phases.append(plan_webrtc_phase(request, arch, profile, host))
    if request.scope.includes_ringrtc:
        phases.append(plan_addon_phase(request, arch, profile, host))
    return phases


def run(
    request: BuildRequest,
    host: HostEnvironment,
    dry_run: bool = False,
) -> list[OutputArtifact]:
    """Plan and execute a build.

    Args:
        request: Validated build request.
        host: Captured host environment.
        dry_run: Plan and log the steps without executing them.

    Returns:
        The produced artifacts (empty for a dry run).

    Raises:
        BuildError: On the first failure; nothing after it runs.
    """
    phases = plan(request, host)
    if dry_run:
        for phase in phases:
            for step in phase.steps:
                logger.info("[dry run] %s: %s", phase.name, step.describe())
        return []

    artifacts: list[OutputArtifact] = []
    for phase in phases:
        logger.info("Starting %s phase (%s)", phase.name, request.build_type.value)
        run_steps(phase.steps, host.base_env)
        artifacts.extend(describe_outputs(phase.outputs))
    return artifacts


def plan_clean(host: HostEnvironment) -> Phase:
    """Plan removal of all build outputs followed by ``cargo clean``.

    Raises:
        MissingDependencyError: If cargo is not on PATH.
    """
    cargo = require_tool("cargo")
    phase = Phase(name="clean")
    phase.add(RemoveTree(host.project_root / ADDON_DIR))
    for build_type in BuildType:
        phase.add(RemoveTree(host.output_dir / build_type.value))
    phase.add(
        Invocation(
            argv=(cargo, "clean"),
            cwd=host.project_root,
            env={"CARGO_TARGET_DIR": str(host.cargo_target_dir)},
            description="clean cargo outputs",
        )
    )
    return phase


def clean(host: HostEnvironment, dry_run: bool = False) -> None:
    """Remove build outputs. No build phase runs."""
    phase = plan_clean(host)
    if dry_run:
        for step in phase.steps:
            logger.info("[dry run] clean: %s", step.describe())
        return
    run_steps(phase.steps, host.base_env)


__all__ = [
    "UNKNOWN_VERSION",
    "build_request",
    "clean",
    "detect_host_environment",
    "plan",
    "plan_clean",
    "resolve_target",
    "run",
]
