"""WebRTC dependency build planning.

This module handles:
- Composing GN arguments from the build request
- Planning ``gn gen`` + ``ninja`` and the optional test-resource and license steps
- Planning the static library archive
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from ringrtc_build.artifacts import (
    LICENSE_FILENAME,
    STATIC_LIBRARY_CANDIDATES,
    webrtc_archive_filename,
)
from ringrtc_build.steps import Invocation, PackArchive, Phase
from ringrtc_build.toolchain import require_tool
from ringrtc_build.types import (
    ArchSpec,
    ArtifactKind,
    BuildRequest,
    BuildType,
    HostEnvironment,
    Platform,
    PlatformProfile,
)

logger = logging.getLogger(__name__)

# Build products the addon never links against.
BASE_GN_ARGS = (
    "rtc_build_examples=false",
    "rtc_build_tools=false",
    "rtc_use_x11=false",
    "rtc_enable_sctp=false",
    "rtc_libvpx_build_vp9=true",
    "rtc_disable_metrics=true",
    "rtc_disable_trace_events=true",
)

RELEASE_GN_ARGS = ("is_debug=false", "symbol_level=1")

# libyuv's SME kernels fail to build with the Linux arm64 toolchain.
SME_DISABLE_ARG = "libyuv_use_sme=false"

HOST_PLATFORM_NAMES = {
    Platform.DARWIN: "mac",
    Platform.WINDOWS: "windows",
    Platform.LINUX: "linux",
}

TEST_RESOURCES_BUCKET = "chromium-webrtc-resources"


def _gn_bool(value: bool) -> str:
    return "true" if value else "false"


def compose_gn_args(request: BuildRequest, arch: ArchSpec, plat: Platform) -> list[str]:
    """Compose the GN ``--args`` entries for a request.

    Args:
        request: The build request.
        arch: Resolved architecture.
        plat: Active host platform.

    Returns:
        List of ``key=value`` GN arguments.
    """
    args = [f'target_cpu="{arch.gn_arch}"', *BASE_GN_ARGS]

    args.append(
        f"rtc_include_dummy_audio_file_devices={_gn_bool(request.build_for_simulator)}"
    )

    tests = _gn_bool(request.include_webrtc_tests)
    args.append(f"rtc_include_tests={tests}")
    args.append(f"rtc_enable_protobuf={tests}")

    if request.build_type is BuildType.RELEASE:
        args.extend(RELEASE_GN_ARGS)

    if plat is Platform.LINUX and arch.name == "arm64":
        args.append(SME_DISABLE_ARG)

    return args


def host_platform_name(host: HostEnvironment, plat: Platform) -> str:
    """Platform name used in archive filenames; HOST_PLATFORM wins if set."""
    return host.host_platform or HOST_PLATFORM_NAMES[plat]


def plan_webrtc_phase(
    request: BuildRequest,
    arch: ArchSpec,
    profile: PlatformProfile,
    host: HostEnvironment,
) -> Phase:
    """Plan the WebRTC dependency build.

    Raises:
        MissingDependencyError: If gn or ninja is not on PATH.
    """
    gn = require_tool("gn")
    ninja = require_tool("ninja")

    phase = Phase(name="webrtc")
    build_dir = host.output_dir / request.build_type.value
    src_dir = host.webrtc_src_dir

    gn_args = " ".join(compose_gn_args(request, arch, profile.platform))
    logger.info("WebRTC GN args: %s", gn_args)

    phase.add(
        Invocation(
            argv=(gn, "gen", str(build_dir), f"--args={gn_args}"),
            cwd=src_dir,
            description="generate WebRTC build files",
        )
    )

    ninja_argv: tuple[str, ...] = (ninja, "-C", str(build_dir))
    if not request.include_webrtc_tests:
        ninja_argv += ("webrtc",)
    phase.add(Invocation(argv=ninja_argv, cwd=src_dir, description="build WebRTC"))

    if request.include_webrtc_tests:
        phase.add(
            Invocation(
                argv=(
                    "download_from_google_storage",
                    "--directory",
                    "--recursive",
                    "--num_threads=10",
                    "--no_auth",
                    "--quiet",
                    "--bucket",
                    TEST_RESOURCES_BUCKET,
                    "resources",
                ),
                cwd=src_dir,
                description="download WebRTC test resources",
            )
        )

    # The archive packs LICENSE.md, so the license step runs for it too.
    if request.include_webrtc_tests or request.archive_webrtc:
        phase.add(
            Invocation(
                argv=(
                    sys.executable,
                    str(Path("tools_webrtc", "libs", "generate_licenses.py")),
                    "--target",
                    ":webrtc",
                    str(build_dir),
                    str(build_dir),
                ),
                cwd=src_dir,
                description="aggregate WebRTC licenses",
            )
        )
        phase.expect(build_dir / LICENSE_FILENAME, ArtifactKind.LICENSE)

    if request.archive_webrtc:
        archive = build_dir / webrtc_archive_filename(
            host.webrtc_version,
            host_platform_name(host, profile.platform),
            arch,
            request.build_type,
            for_simulator=request.build_for_simulator,
        )
        type_dir = Path(request.build_type.value)
        phase.add(
            PackArchive(
                archive=archive,
                root=host.output_dir,
                library_candidates=tuple(
                    (type_dir / c).as_posix() for c in STATIC_LIBRARY_CANDIDATES
                ),
                members=((type_dir / LICENSE_FILENAME).as_posix(),),
            )
        )
        phase.expect(archive, ArtifactKind.WEBRTC_ARCHIVE)

    return phase


__all__ = [
    "BASE_GN_ARGS",
    "HOST_PLATFORM_NAMES",
    "RELEASE_GN_ARGS",
    "SME_DISABLE_ARG",
    "compose_gn_args",
    "host_platform_name",
    "plan_webrtc_phase",
]
