"""Output naming, static library lookup, archive packing and hashing.

This module handles:
- Composing the deterministic output filenames
- Locating the WebRTC static library (its name differs by platform)
- Packing the library and license into a bzip2 tarball
- Computing checksums and describing produced files
"""

from __future__ import annotations

import hashlib
import logging
import tarfile
from pathlib import Path

from ringrtc_build.errors import ArtifactNotFoundError
from ringrtc_build.types import ArchSpec, ArtifactKind, BuildType, OutputArtifact, Platform

logger = logging.getLogger(__name__)

ADDON_DIR = Path("src", "node", "build")
LICENSE_FILENAME = "LICENSE.md"

# Relative to the build type directory. Windows first, then everything else.
STATIC_LIBRARY_CANDIDATES = (Path("obj", "webrtc.lib"), Path("obj", "libwebrtc.a"))

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def addon_filename(arch: ArchSpec) -> str:
    return f"libringrtc-{arch.name}.node"


def addon_path(project_root: Path, plat: Platform, arch: ArchSpec) -> Path:
    """Return ``src/node/build/<platform>/libringrtc-<arch>.node``."""
    return project_root / ADDON_DIR / plat.value / addon_filename(arch)


def symbol_filename(version: str, plat: Platform, arch: ArchSpec) -> str:
    return f"libringrtc-{version}-{plat.value}-{arch.name}-debuginfo.sym"


def webrtc_archive_filename(
    webrtc_version: str,
    host_platform: str,
    arch: ArchSpec,
    build_type: BuildType,
    for_simulator: bool = False,
) -> str:
    """Compose ``webrtc-<ver>-<host>-<arch>-<type>[-sim].tar.bz2``."""
    suffix = "-sim" if for_simulator else ""
    return (
        f"webrtc-{webrtc_version}-{host_platform}-{arch.name}"
        f"-{build_type.value}{suffix}.tar.bz2"
    )


def locate_static_library(root: Path, candidates: tuple[str, ...]) -> str:
    """Return the first candidate (relative to root) that exists.

    Raises:
        ArtifactNotFoundError: If none of the candidates exist.
    """
    for candidate in candidates:
        if (root / candidate).is_file():
            return candidate
    tried = ", ".join(str(root / c) for c in candidates)
    raise ArtifactNotFoundError(f"WebRTC static library not found (tried {tried})")


def pack_archive(
    archive: Path,
    root: Path,
    library_candidates: tuple[str, ...],
    members: tuple[str, ...] = (),
) -> Path:
    """Pack the static library plus extra members into a bzip2 tarball.

    Members are stored under their path relative to ``root``; symlinks are
    followed.

    Raises:
        ArtifactNotFoundError: If the library or a member is missing.
    """
    library = locate_static_library(root, library_candidates)
    for member in members:
        if not (root / member).is_file():
            raise ArtifactNotFoundError(f"Archive member not found: {root / member}")

    archive.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Packing %s into %s", library, archive)
    with tarfile.open(archive, "w:bz2", dereference=True) as tar:
        for name in (library, *members):
            tar.add(root / name, arcname=name)
    return archive


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def describe_outputs(expected: list[tuple[Path, ArtifactKind]]) -> list[OutputArtifact]:
    """Turn expected output paths into OutputArtifacts.

    Paths that were not produced are skipped with a warning; the run itself
    already succeeded at this point.
    """
    artifacts: list[OutputArtifact] = []
    for path, kind in expected:
        if not path.is_file():
            logger.warning("Expected %s output was not produced: %s", kind.value, path)
            continue
        artifacts.append(
            OutputArtifact(
                path=path,
                kind=kind,
                size_bytes=path.stat().st_size,
                sha256=compute_file_hash(path),
            )
        )
    return artifacts


__all__ = [
    "ADDON_DIR",
    "LICENSE_FILENAME",
    "STATIC_LIBRARY_CANDIDATES",
    "addon_filename",
    "addon_path",
    "compute_file_hash",
    "describe_outputs",
    "locate_static_library",
    "pack_archive",
    "symbol_filename",
    "webrtc_archive_filename",
]
