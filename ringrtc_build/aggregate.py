"""Desktop artifact aggregation.

After the per-platform builds, the addons from every platform are collected
into one ``src/node/build`` tree. This module then:
- Packs that tree as ``ringrtc-desktop-build-v<version>.tar.gz``
- Records the archive checksum in ``package.json`` (``prebuildChecksum``)
- Lays out symbol files as ``<version>/<platform>/<arch>/symbols.sym``
"""

from __future__ import annotations

import json
import logging
import re
import tarfile
from dataclasses import dataclass
from pathlib import Path

from ringrtc_build.artifacts import compute_file_hash
from ringrtc_build.errors import ArtifactNotFoundError

logger = logging.getLogger(__name__)

SYMBOL_FILE_PATTERN = re.compile(
    r"^libringrtc-(?P<version>.+)-(?P<platform>darwin|win32|linux)"
    r"-(?P<arch>x64|ia32|arm64)-debuginfo\.sym$"
)
CHECKSUM_KEY = "prebuildChecksum"


@dataclass
class PrebuildArchive:
    """The aggregated desktop archive and its checksum."""

    path: Path
    sha256: str


def prebuild_archive_filename(version: str) -> str:
    return f"ringrtc-desktop-build-v{version}.tar.gz"


def create_prebuild_archive(node_dir: Path, version: str) -> PrebuildArchive:
    """Pack ``<node_dir>/build`` into the desktop prebuild archive.

    Args:
        node_dir: The ``src/node`` directory.
        version: Package version.

    Returns:
        PrebuildArchive with path and SHA-256.

    Raises:
        ArtifactNotFoundError: If there is no build directory.
    """
    build_dir = node_dir / "build"
    if not build_dir.is_dir():
        raise ArtifactNotFoundError(f"No build directory: {build_dir}")

    archive = node_dir / prebuild_archive_filename(version)
    with tarfile.open(archive, "w:gz") as tar:
        tar.add(build_dir, arcname="build")

    sha256 = compute_file_hash(archive)
    logger.info("%s  %s", sha256, archive.name)
    return PrebuildArchive(path=archive, sha256=sha256)


def set_prebuild_checksum(package_json: Path, sha256: str) -> None:
    """Write the archive checksum into ``package.json``."""
    data = json.loads(package_json.read_text(encoding="utf-8"))
    data[CHECKSUM_KEY] = sha256
    package_json.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def arrange_symbols(symbols_dir: Path, version: str) -> list[Path]:
    """Move symbol files into the ``<version>/<platform>/<arch>/symbols.sym`` layout.

    Files that do not match the symbol naming pattern are left alone. A file
    whose embedded version differs from ``version`` is still moved, with a
    warning.

    Returns:
        New paths of the moved files.
    """
    arranged: list[Path] = []
    for path in sorted(symbols_dir.glob("libringrtc-*-debuginfo.sym")):
        match = SYMBOL_FILE_PATTERN.match(path.name)
        if match is None:
            logger.warning("Skipping unrecognized symbol file: %s", path.name)
            continue
        if match.group("version") != version:
            logger.warning(
                "Symbol file %s is for version %s, not %s",
                path.name,
                match.group("version"),
                version,
            )
        dest = symbols_dir / version / match.group("platform") / match.group("arch") / "symbols.sym"
        dest.parent.mkdir(parents=True, exist_ok=True)
        path.replace(dest)
        arranged.append(dest)
    return arranged


__all__ = [
    "CHECKSUM_KEY",
    "PrebuildArchive",
    "arrange_symbols",
    "create_prebuild_archive",
    "prebuild_archive_filename",
    "set_prebuild_checksum",
]
