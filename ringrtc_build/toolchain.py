"""Locating external tools and version metadata in the checkout."""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from ringrtc_build.errors import MissingDependencyError

logger = logging.getLogger(__name__)

# Install hints for tools whose absence is reported as MissingDependencyError.
TOOL_HINTS = {
    "gn": "add depot_tools to PATH",
    "ninja": "add depot_tools to PATH",
    "cargo": "install a Rust toolchain with rustup",
    "rustup": "needed to add cross-compilation targets",
    "dsymutil": "install the Xcode command line tools",
    "strip": "install binutils or the Xcode command line tools",
}


def find_tool(name: str) -> str | None:
    """Return the full path of a tool on PATH, or None."""
    return shutil.which(name)


def require_tool(name: str) -> str:
    """Return the full path of a required tool.

    Raises:
        MissingDependencyError: If the tool is not on PATH.
    """
    path = find_tool(name)
    if path is None:
        raise MissingDependencyError(name, hint=TOOL_HINTS.get(name))
    return path


def find_first_tool(*names: str) -> str | None:
    """Return the first of several candidate tools that is on PATH."""
    for name in names:
        path = find_tool(name)
        if path is not None:
            return path
    return None


def read_project_version(project_root: Path) -> str | None:
    """Read the addon version from ``src/node/package.json``."""
    return read_package_version(project_root / "src" / "node" / "package.json")


def read_package_version(package_json: Path) -> str | None:
    """Read ``version`` from a package.json file, if present."""
    if not package_json.is_file():
        return None
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.warning("Could not parse %s: %s", package_json, e)
        return None
    version = data.get("version")
    return str(version) if version else None


def read_webrtc_version(project_root: Path) -> str | None:
    """Read ``webrtc.version`` from ``config/version.properties``."""
    properties = project_root / "config" / "version.properties"
    if not properties.is_file():
        return None
    for line in properties.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip() == "webrtc.version":
            return value.strip()
    return None


__all__ = [
    "TOOL_HINTS",
    "find_first_tool",
    "find_tool",
    "read_package_version",
    "read_project_version",
    "read_webrtc_version",
    "require_tool",
]
