"""Shared type definitions for ringrtc_build.

This module contains enums and dataclasses shared across modules to avoid
circular imports.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType


class BuildType(str, Enum):
    """Build type, which also names the output subdirectory."""

    DEBUG = "debug"
    RELEASE = "release"


class BuildScope(str, Enum):
    """Which phases of the build run."""

    ALL = "all"
    WEBRTC_ONLY = "webrtc-only"
    RINGRTC_ONLY = "ringrtc-only"

    @property
    def includes_webrtc(self) -> bool:
        return self in (BuildScope.ALL, BuildScope.WEBRTC_ONLY)

    @property
    def includes_ringrtc(self) -> bool:
        return self in (BuildScope.ALL, BuildScope.RINGRTC_ONLY)


class Platform(str, Enum):
    """Host platform, detected from the Rust toolchain identity.

    The values are the platform names used in output paths.
    """

    DARWIN = "darwin"
    WINDOWS = "win32"
    LINUX = "linux"


class ArtifactKind(str, Enum):
    """Kind of file produced by a build."""

    ADDON = "addon"
    SYMBOLS = "symbols"
    WEBRTC_ARCHIVE = "webrtc-archive"
    LICENSE = "license"


@dataclass(frozen=True)
class ArchSpec:
    """A canonical architecture and its spellings for each toolchain.

    Attributes:
        name: Canonical name used in output filenames (x64, ia32, arm64).
        gn_arch: Value for the GN ``target_cpu`` argument.
        cargo_arch: Architecture component of the Rust target triple.
    """

    name: str
    gn_arch: str
    cargo_arch: str


@dataclass(frozen=True)
class PlatformProfile:
    """The active platform together with the compiler target triple."""

    platform: Platform
    target_triple: str


@dataclass(frozen=True)
class BuildRequest:
    """A validated build request.

    ``target_arch`` of None means the architecture is taken from the
    environment or the host.
    """

    target_arch: str | None = None
    build_type: BuildType = BuildType.DEBUG
    scope: BuildScope = BuildScope.ALL
    archive_webrtc: bool = False
    test_adm: bool = False
    build_for_simulator: bool = False
    include_webrtc_tests: bool = False


@dataclass(frozen=True)
class OutputArtifact:
    """A file produced by a build run."""

    path: Path
    kind: ArtifactKind
    size_bytes: int
    sha256: str


@dataclass(frozen=True)
class HostEnvironment:
    """Everything a build run reads from the host, captured once.

    Child processes see ``base_env`` plus the overrides each step declares;
    the orchestrator never mutates the process environment.

    Attributes:
        toolchain_triple: Host triple reported by rustc (e.g. x86_64-apple-darwin).
        host_arch: Host machine architecture, spelled for the alias table.
        project_root: Root of the RingRTC checkout.
        output_dir: Base directory for generated build outputs.
        webrtc_src_dir: WebRTC source checkout.
        cargo_target_dir: Cargo target directory.
        project_version: RingRTC version embedded in symbol filenames.
        webrtc_version: WebRTC version embedded in archive filenames.
        target_arch: TARGET_ARCH from the environment, if set.
        host_platform: HOST_PLATFORM override for archive names.
        rustflags: Base RUSTFLAGS, extended per build.
        base_env: Snapshot of the environment passed to child processes.
    """

    toolchain_triple: str
    host_arch: str
    project_root: Path
    output_dir: Path
    webrtc_src_dir: Path
    cargo_target_dir: Path
    project_version: str
    webrtc_version: str
    target_arch: str | None = None
    host_platform: str | None = None
    rustflags: str = ""
    base_env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_env", MappingProxyType(dict(self.base_env)))


__all__ = [
    "ArchSpec",
    "ArtifactKind",
    "BuildRequest",
    "BuildScope",
    "BuildType",
    "HostEnvironment",
    "OutputArtifact",
    "Platform",
    "PlatformProfile",
]
