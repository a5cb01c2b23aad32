"""Shared fixtures: a temporary checkout, a host environment and fake tools."""

import shutil
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ringrtc_build.types import HostEnvironment

DEFAULT_TOOLS = {
    "gn",
    "ninja",
    "cargo",
    "rustup",
    "dump_syms",
    "dsymutil",
    "strip",
    "x86_64-linux-gnu-strip",
    "aarch64-linux-gnu-strip",
}

# What `cargo rustc --crate-type cdylib` produces, by triple suffix.
_LIBRARY_NAMES = {
    "-apple-darwin": "libringrtc.dylib",
    "-pc-windows-msvc": "ringrtc.dll",
    "-unknown-linux-gnu": "libringrtc.so",
}


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a minimal RingRTC checkout layout."""
    root = tmp_path / "ringrtc"
    (root / "src" / "rust").mkdir(parents=True)
    (root / "src" / "webrtc" / "src").mkdir(parents=True)
    return root


@pytest.fixture
def make_host(project_root):
    """Factory for HostEnvironment instances rooted in the temp checkout."""

    def _make(
        triple: str = "x86_64-unknown-linux-gnu",
        host_arch: str = "x64",
        **overrides,
    ) -> HostEnvironment:
        values = {
            "toolchain_triple": triple,
            "host_arch": host_arch,
            "project_root": project_root,
            "output_dir": project_root / "out",
            "webrtc_src_dir": project_root / "src" / "webrtc" / "src",
            "cargo_target_dir": project_root / "target",
            "project_version": "2.50.1",
            "webrtc_version": "6834b",
            "base_env": {"PATH": "/usr/bin"},
        }
        values.update(overrides)
        return HostEnvironment(**values)

    return _make


@pytest.fixture
def tools():
    """Patch tool lookup; tests may remove names from the returned set."""
    available = set(DEFAULT_TOOLS)

    def _which(name):
        return f"/usr/bin/{name}" if name in available else None

    with patch("ringrtc_build.toolchain.shutil.which", side_effect=_which):
        yield available


def _arg_after(argv, flag):
    return argv[argv.index(flag) + 1]


def _fake_run(argv, cwd=None, env=None, check=False, **kwargs):
    """Simulate the file effects of the external tools."""
    prog = Path(argv[0]).name
    if prog == "cargo" and argv[1] == "rustc":
        triple = _arg_after(argv, "--target")
        profile = "release" if "--release" in argv else "debug"
        out = Path(env["CARGO_TARGET_DIR"]) / triple / profile
        out.mkdir(parents=True, exist_ok=True)
        name = next(n for s, n in _LIBRARY_NAMES.items() if triple.endswith(s))
        (out / name).write_bytes(b"\x7fELF" + b"\0" * 4096)
        if triple.endswith("-pc-windows-msvc"):
            (out / "ringrtc.pdb").write_bytes(b"PDB")
    elif prog == "ninja":
        build_dir = Path(argv[2])
        (build_dir / "obj").mkdir(parents=True, exist_ok=True)
        (build_dir / "obj" / "libwebrtc.a").write_bytes(b"!<arch>\n")
    elif len(argv) > 1 and argv[1].endswith("generate_licenses.py"):
        Path(argv[-1]).mkdir(parents=True, exist_ok=True)
        (Path(argv[-1]) / "LICENSE.md").write_text("# WebRTC\n")
    elif prog == "dsymutil":
        Path(_arg_after(argv, "-o")).mkdir(parents=True, exist_ok=True)
    elif prog.endswith("strip") and "-o" in argv:
        shutil.copyfile(argv[2], _arg_after(argv, "-o"))
    elif prog == "dump_syms":
        Path(_arg_after(argv, "-o")).write_text("MODULE fake\n")
    return MagicMock(returncode=0)


@pytest.fixture
def fake_run():
    """Patch subprocess.run with a fake toolchain; yields the mock."""
    with patch("subprocess.run", side_effect=_fake_run) as mock_run:
        yield mock_run


@pytest.fixture
def invoked(fake_run):
    """Return a callable listing invoked program basenames in call order."""

    def _programs() -> list[str]:
        return [Path(call.args[0][0]).name for call in fake_run.call_args_list]

    return _programs
