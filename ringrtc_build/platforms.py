"""Architecture and platform resolution.

This module handles:
- Canonicalizing architecture spellings through a static alias table
- Reading the host Rust toolchain identity (``rustc -vV``)
- Mapping the toolchain identity onto one of the three supported platforms
"""

from __future__ import annotations

import logging
import platform
import subprocess
from types import MappingProxyType

from ringrtc_build.errors import (
    ExternalToolFailureError,
    MissingDependencyError,
    UnknownPlatformError,
    UnsupportedArchitectureError,
)
from ringrtc_build.types import ArchSpec, Platform, PlatformProfile

logger = logging.getLogger(__name__)

X64 = ArchSpec(name="x64", gn_arch="x64", cargo_arch="x86_64")
IA32 = ArchSpec(name="ia32", gn_arch="x86", cargo_arch="i686")
ARM64 = ArchSpec(name="arm64", gn_arch="arm64", cargo_arch="aarch64")

ARCH_ALIASES = MappingProxyType(
    {
        "x64": X64,
        "x86_64": X64,
        "ia32": IA32,
        "arm64": ARM64,
        "aarch64": ARM64,
    }
)

# Rust host triple suffix -> platform. Order does not matter; suffixes are disjoint.
TRIPLE_SUFFIXES = MappingProxyType(
    {
        "-apple-darwin": Platform.DARWIN,
        "-pc-windows-msvc": Platform.WINDOWS,
        "-unknown-linux-gnu": Platform.LINUX,
    }
)

# Spellings of platform.machine() that are not already accepted aliases.
_MACHINE_NAMES = {
    "amd64": "x64",
    "i386": "ia32",
    "i686": "ia32",
    "x86": "ia32",
}


def resolve_arch(arch: str) -> ArchSpec:
    """Look up an architecture spelling in the alias table.

    Args:
        arch: Architecture as given by the user or the environment.

    Returns:
        The canonical ArchSpec.

    Raises:
        UnsupportedArchitectureError: If the spelling is not recognized.
    """
    try:
        return ARCH_ALIASES[arch]
    except KeyError:
        raise UnsupportedArchitectureError(arch) from None


def host_arch() -> str:
    """Return the host machine architecture, spelled for ``resolve_arch``."""
    machine = platform.machine().lower()
    return _MACHINE_NAMES.get(machine, machine)


def platform_for_triple(triple: str) -> Platform:
    """Classify a Rust host triple.

    Raises:
        UnknownPlatformError: If no known suffix matches.
    """
    for suffix, plat in TRIPLE_SUFFIXES.items():
        if triple.endswith(suffix):
            return plat
    raise UnknownPlatformError(triple)


def target_triple(plat: Platform, arch: ArchSpec) -> str:
    """Compose the Rust target triple for a platform and architecture."""
    for suffix, candidate in TRIPLE_SUFFIXES.items():
        if candidate is plat:
            return f"{arch.cargo_arch}{suffix}"
    raise UnknownPlatformError(plat.value)


def profile_for_triple(toolchain_triple: str, arch: ArchSpec) -> PlatformProfile:
    """Build the active PlatformProfile for the given host toolchain and arch."""
    plat = platform_for_triple(toolchain_triple)
    return PlatformProfile(platform=plat, target_triple=target_triple(plat, arch))


def parse_rustc_host(version_output: str) -> str:
    """Extract the ``host:`` triple from ``rustc -vV`` output.

    Returns:
        The triple, or an empty string when the line is absent.
    """
    for line in version_output.splitlines():
        key, _, value = line.partition(":")
        if key.strip() == "host":
            return value.strip()
    return ""


def detect_toolchain_triple() -> str:
    """Ask the active Rust toolchain for its host triple.

    Raises:
        MissingDependencyError: If rustc cannot be run.
        ExternalToolFailureError: If rustc exits non-zero.
    """
    try:
        result = subprocess.run(
            ["rustc", "-vV"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise MissingDependencyError("rustc", hint="install it with rustup") from e

    if result.returncode != 0:
        raise ExternalToolFailureError("rustc -vV", result.returncode)

    triple = parse_rustc_host(result.stdout)
    logger.debug("Detected toolchain host triple: %s", triple or "(none)")
    return triple


__all__ = [
    "ARCH_ALIASES",
    "ARM64",
    "IA32",
    "TRIPLE_SUFFIXES",
    "X64",
    "detect_toolchain_triple",
    "host_arch",
    "parse_rustc_host",
    "platform_for_triple",
    "profile_for_triple",
    "resolve_arch",
    "target_triple",
]
