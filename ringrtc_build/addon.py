"""RingRTC Node addon build planning.

This module handles:
- Composing the cargo environment (RUSTFLAGS, profile settings) per platform
- Planning the cargo build, platform post-processing and the copy into
  ``src/node/build/<platform>/``
- Planning the optional symbol file and audio device module tests
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from ringrtc_build.artifacts import addon_path, symbol_filename
from ringrtc_build.errors import MissingDependencyError
from ringrtc_build.steps import CopyFile, Invocation, MakeDirs, Phase
from ringrtc_build.toolchain import find_first_tool, find_tool, require_tool
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

CARGO_PACKAGE = "ringrtc"
CARGO_FEATURES = "electron"
ADM_TEST_FILTER = "audio_device_module_tests"
MACOSX_DEPLOYMENT_TARGET = "10.15"
SYMBOL_TOOL = "dump_syms"

# platform -> (crate type, file cargo produces, debug database next to it)
ADDON_LIBRARIES = {
    Platform.DARWIN: ("cdylib", "libringrtc.dylib", "libringrtc.dylib.dSYM"),
    Platform.WINDOWS: ("cdylib", "ringrtc.dll", "ringrtc.pdb"),
    Platform.LINUX: ("cdylib", "libringrtc.so", None),
}

_NUMERIC_VERSION = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?")


def cargo_profile_dir(build_type: BuildType) -> str:
    return "release" if build_type is BuildType.RELEASE else "debug"


def built_library_dir(host: HostEnvironment, profile: PlatformProfile, build_type: BuildType) -> Path:
    """Directory cargo writes the addon library into."""
    return host.cargo_target_dir / profile.target_triple / cargo_profile_dir(build_type)


def _link_version_flags(plat: Platform, version: str) -> list[str]:
    match = _NUMERIC_VERSION.match(version)
    if match is None:
        logger.debug("Version %r is not numeric; no linker version metadata", version)
        return []
    major, minor, patch = match.group(1), match.group(2), match.group(3) or "0"
    if plat is Platform.DARWIN:
        return [f"-C link-arg=-Wl,-current_version,{major}.{minor}.{patch}"]
    if plat is Platform.WINDOWS:
        return [f"-C link-arg=/VERSION:{major}.{minor}"]
    return []


def compose_rustflags(host: HostEnvironment, arch: ArchSpec, profile: PlatformProfile) -> str:
    """Extend the base RUSTFLAGS for the target."""
    flags = [host.rustflags.strip()] if host.rustflags.strip() else []
    flags.extend(_link_version_flags(profile.platform, host.project_version))
    if profile.platform is Platform.WINDOWS and arch.name == "ia32":
        # The dynamic CRT fails to link for 32-bit Windows.
        flags.append("-C target-feature=+crt-static")
    return " ".join(flags)


def compose_cargo_env(
    request: BuildRequest,
    arch: ArchSpec,
    profile: PlatformProfile,
    host: HostEnvironment,
) -> dict[str, str]:
    """Compose the environment overrides for cargo invocations."""
    env = {
        "RUSTFLAGS": compose_rustflags(host, arch, profile),
        "CARGO_TARGET_DIR": str(host.cargo_target_dir),
        "OUTPUT_DIR": str(host.output_dir),
    }
    if request.build_type is BuildType.RELEASE:
        env["CARGO_PROFILE_RELEASE_DEBUG"] = "true"
    if profile.platform is Platform.DARWIN:
        env["MACOSX_DEPLOYMENT_TARGET"] = MACOSX_DEPLOYMENT_TARGET
    return env


def compose_cargo_build_command(
    cargo: str, request: BuildRequest, profile: PlatformProfile
) -> list[str]:
    """Compose the ``cargo rustc`` command building the addon."""
    crate_type = ADDON_LIBRARIES[profile.platform][0]
    cmd = [
        cargo,
        "rustc",
        "--package",
        CARGO_PACKAGE,
        "--target",
        profile.target_triple,
        "--features",
        CARGO_FEATURES,
    ]
    if request.build_type is BuildType.RELEASE:
        cmd.append("--release")
    cmd.extend(["--crate-type", crate_type])
    return cmd


def compose_adm_test_command(
    cargo: str, request: BuildRequest, profile: PlatformProfile
) -> list[str]:
    """Compose the ``cargo test`` command for the audio device module tests."""
    cmd = [
        cargo,
        "test",
        "--package",
        CARGO_PACKAGE,
        "--target",
        profile.target_triple,
        "--features",
        CARGO_FEATURES,
    ]
    if request.build_type is BuildType.RELEASE:
        cmd.append("--release")
    cmd.extend([ADM_TEST_FILTER, "--", "--test-threads=1"])
    return cmd


def _linux_strip_tool(arch: ArchSpec) -> str:
    tool = find_first_tool(f"{arch.cargo_arch}-linux-gnu-strip", "strip")
    if tool is None:
        raise MissingDependencyError("strip", hint="install binutils")
    return tool


def plan_addon_phase(
    request: BuildRequest,
    arch: ArchSpec,
    profile: PlatformProfile,
    host: HostEnvironment,
) -> Phase:
    """Plan the addon build, post-processing and optional ADM tests.

    Raises:
        MissingDependencyError: If cargo (or rustup, when cross-compiling,
            dsymutil and strip on Darwin, or strip on a Linux release) is not
            on PATH.
    """
    cargo = require_tool("cargo")
    phase = Phase(name="ringrtc")
    plat = profile.platform
    cargo_cwd = host.project_root / "src" / "rust"
    env = compose_cargo_env(request, arch, profile, host)

    if profile.target_triple != host.toolchain_triple:
        rustup = require_tool("rustup")
        phase.add(
            Invocation(
                argv=(rustup, "target", "add", profile.target_triple),
                cwd=host.project_root,
                description="install cross-compilation target",
            )
        )

    phase.add(
        Invocation(
            argv=tuple(compose_cargo_build_command(cargo, request, profile)),
            cwd=cargo_cwd,
            env=env,
            description="build RingRTC addon",
        )
    )

    _, library_name, debug_name = ADDON_LIBRARIES[plat]
    library_dir = built_library_dir(host, profile, request.build_type)
    library = library_dir / library_name
    destination = addon_path(host.project_root, plat, arch)
    phase.add(MakeDirs(destination.parent))

    # Input for dump_syms: a separate debug database, or the unstripped library.
    symbol_source = library_dir / debug_name if debug_name else library

    if plat is Platform.DARWIN:
        dsymutil = require_tool("dsymutil")
        strip = require_tool("strip")
        phase.add(
            Invocation(
                argv=(dsymutil, str(library), "-o", str(symbol_source)),
                cwd=library_dir,
                description="extract debug symbol bundle",
            )
        )
        phase.add(CopyFile(library, destination))
        phase.add(
            Invocation(
                argv=(strip, "-S", "-x", str(destination)),
                cwd=destination.parent,
                description="strip addon",
            )
        )
    elif plat is Platform.LINUX and request.build_type is BuildType.RELEASE:
        strip = _linux_strip_tool(arch)
        phase.add(
            Invocation(
                argv=(strip, "-s", str(library), "-o", str(destination)),
                cwd=library_dir,
                description="strip addon on copy",
            )
        )
    else:
        phase.add(CopyFile(library, destination))

    phase.expect(destination, ArtifactKind.ADDON)

    if request.build_type is BuildType.RELEASE:
        dump_syms = find_tool(SYMBOL_TOOL)
        if dump_syms is None:
            logger.warning("%s not found; skipping symbol file", SYMBOL_TOOL)
        else:
            symbols_dir = host.output_dir / request.build_type.value
            symbol_file = symbols_dir / symbol_filename(host.project_version, plat, arch)
            phase.add(MakeDirs(symbols_dir))
            phase.add(
                Invocation(
                    argv=(dump_syms, str(symbol_source), "-o", str(symbol_file)),
                    cwd=library_dir,
                    description="write symbol file",
                )
            )
            phase.expect(symbol_file, ArtifactKind.SYMBOLS)

    if request.test_adm:
        phase.add(
            Invocation(
                argv=tuple(compose_adm_test_command(cargo, request, profile)),
                cwd=cargo_cwd,
                env=env,
                description="run audio device module tests",
            )
        )

    return phase


__all__ = [
    "ADDON_LIBRARIES",
    "ADM_TEST_FILTER",
    "built_library_dir",
    "cargo_profile_dir",
    "compose_adm_test_command",
    "compose_cargo_build_command",
    "compose_cargo_env",
    "compose_rustflags",
    "plan_addon_phase",
]
