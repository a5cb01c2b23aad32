"""Immutable step records produced by planning and consumed by the runner.

A plan is a list of steps. Planning never touches the filesystem or runs
tools; the runner does both, in order.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from ringrtc_build.types import ArtifactKind


@dataclass(frozen=True)
class Invocation:
    """An external tool invocation.

    Attributes:
        argv: Program and arguments.
        cwd: Working directory.
        env: Environment overrides, layered over the host environment snapshot.
        description: Short label for logs.
    """

    argv: tuple[str, ...]
    cwd: Path
    env: Mapping[str, str] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "argv", tuple(str(a) for a in self.argv))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def command(self) -> str:
        return shlex.join(self.argv)

    def describe(self) -> str:
        return f"run {self.command} (in {self.cwd})"


@dataclass(frozen=True)
class MakeDirs:
    """Create a directory and its parents."""

    path: Path

    def describe(self) -> str:
        return f"mkdir -p {self.path}"


@dataclass(frozen=True)
class CopyFile:
    """Copy a single file, overwriting the destination."""

    source: Path
    destination: Path

    def describe(self) -> str:
        return f"copy {self.source} -> {self.destination}"


@dataclass(frozen=True)
class RemoveTree:
    """Remove a directory tree if it exists."""

    path: Path

    def describe(self) -> str:
        return f"rm -rf {self.path}"


@dataclass(frozen=True)
class PackArchive:
    """Pack the WebRTC static library and license into a bzip2 tarball.

    The static library name differs between Windows and other platforms, so
    ``library_candidates`` lists paths relative to ``root`` to try in order.
    Members are stored relative to ``root``.
    """

    archive: Path
    root: Path
    library_candidates: tuple[str, ...]
    members: tuple[str, ...] = ()

    def describe(self) -> str:
        candidates = " | ".join(self.library_candidates)
        extra = " ".join(self.members)
        return f"pack [{candidates}] {extra} -> {self.archive}"


Step = Invocation | MakeDirs | CopyFile | RemoveTree | PackArchive


@dataclass
class Phase:
    """An ordered group of steps with the artifacts they are expected to produce."""

    name: str
    steps: list[Step] = field(default_factory=list)
    outputs: list[tuple[Path, ArtifactKind]] = field(default_factory=list)

    def add(self, step: Step) -> None:
        self.steps.append(step)

    def expect(self, path: Path, kind: ArtifactKind) -> None:
        self.outputs.append((path, kind))


__all__ = [
    "CopyFile",
    "Invocation",
    "MakeDirs",
    "PackArchive",
    "Phase",
    "RemoveTree",
    "Step",
]
