"""Tests for addon.py module.

Tests cargo command and environment composition and per-platform planning.
"""

import pytest

from ringrtc_build.addon import (
    compose_adm_test_command,
    compose_cargo_build_command,
    compose_cargo_env,
    compose_rustflags,
    plan_addon_phase,
)
from ringrtc_build.errors import MissingDependencyError
from ringrtc_build.platforms import profile_for_triple, resolve_arch
from ringrtc_build.steps import CopyFile, Invocation, MakeDirs
from ringrtc_build.types import ArtifactKind, BuildRequest, BuildType

LINUX = "x86_64-unknown-linux-gnu"
DARWIN = "aarch64-apple-darwin"
WINDOWS = "x86_64-pc-windows-msvc"

RELEASE = BuildRequest(build_type=BuildType.RELEASE)


def _programs(phase):
    return [s.argv[0].rsplit("/", 1)[-1] for s in phase.steps if isinstance(s, Invocation)]


class TestComposeCargo:
    """Tests for cargo command and environment composition."""

    def test_build_command_debug(self):
        """Should build the electron cdylib for the target triple."""
        profile = profile_for_triple(LINUX, resolve_arch("x64"))
        cmd = compose_cargo_build_command("cargo", BuildRequest(), profile)
        assert cmd == [
            "cargo",
            "rustc",
            "--package",
            "ringrtc",
            "--target",
            "x86_64-unknown-linux-gnu",
            "--features",
            "electron",
            "--crate-type",
            "cdylib",
        ]

    def test_build_command_release(self):
        """Release should pass --release."""
        profile = profile_for_triple(LINUX, resolve_arch("x64"))
        assert "--release" in compose_cargo_build_command("cargo", RELEASE, profile)

    def test_adm_test_command(self):
        """Should run the audio device module tests single-threaded."""
        profile = profile_for_triple(DARWIN, resolve_arch("arm64"))
        cmd = compose_adm_test_command("cargo", BuildRequest(), profile)
        assert cmd[:2] == ["cargo", "test"]
        assert "audio_device_module_tests" in cmd
        assert cmd[-2:] == ["--", "--test-threads=1"]

    def test_rustflags_are_appended(self, make_host):
        """Base RUSTFLAGS should be kept and extended."""
        host = make_host(triple=DARWIN, rustflags="--cfg foo")
        profile = profile_for_triple(DARWIN, resolve_arch("arm64"))
        flags = compose_rustflags(host, resolve_arch("arm64"), profile)
        assert flags.startswith("--cfg foo ")
        assert "-Wl,-current_version,2.50.1" in flags

    def test_windows_ia32_static_runtime(self, make_host):
        """32-bit Windows should statically link the C runtime."""
        host = make_host(triple=WINDOWS)
        ia32 = resolve_arch("ia32")
        flags = compose_rustflags(host, ia32, profile_for_triple(WINDOWS, ia32))
        assert "+crt-static" in flags
        assert "/VERSION:2.50" in flags

    def test_windows_x64_dynamic_runtime(self, make_host):
        """64-bit Windows should keep the default runtime."""
        host = make_host(triple=WINDOWS)
        x64 = resolve_arch("x64")
        assert "+crt-static" not in compose_rustflags(host, x64, profile_for_triple(WINDOWS, x64))

    def test_non_numeric_version_skips_link_metadata(self, make_host):
        """Version metadata needs a numeric version."""
        host = make_host(triple=DARWIN, project_version="unknown")
        arm64 = resolve_arch("arm64")
        assert compose_rustflags(host, arm64, profile_for_triple(DARWIN, arm64)) == ""

    def test_cargo_env(self, make_host):
        """Should pass outputs, debug info for release, and macOS target."""
        host = make_host(triple=DARWIN)
        arm64 = resolve_arch("arm64")
        env = compose_cargo_env(RELEASE, arm64, profile_for_triple(DARWIN, arm64), host)
        assert env["CARGO_TARGET_DIR"] == str(host.cargo_target_dir)
        assert env["OUTPUT_DIR"] == str(host.output_dir)
        assert env["CARGO_PROFILE_RELEASE_DEBUG"] == "true"
        assert env["MACOSX_DEPLOYMENT_TARGET"] == "10.15"

    def test_cargo_env_linux_debug(self, make_host):
        """Linux debug builds need no profile overrides."""
        host = make_host()
        x64 = resolve_arch("x64")
        env = compose_cargo_env(BuildRequest(), x64, profile_for_triple(LINUX, x64), host)
        assert "CARGO_PROFILE_RELEASE_DEBUG" not in env
        assert "MACOSX_DEPLOYMENT_TARGET" not in env


class TestPlanAddonPhase:
    """Tests for plan_addon_phase function."""

    def _plan(self, make_host, request, triple=LINUX, arch="x64"):
        host = make_host(triple=triple)
        arch_spec = resolve_arch(arch)
        return host, plan_addon_phase(request, arch_spec, profile_for_triple(triple, arch_spec), host)

    def test_linux_debug_copies_unstripped(self, make_host, tools):
        """Debug builds on Linux keep debug info."""
        host, phase = self._plan(make_host, BuildRequest())
        assert "strip" not in " ".join(_programs(phase))
        copy = next(s for s in phase.steps if isinstance(s, CopyFile))
        assert copy.source == host.cargo_target_dir / LINUX / "debug" / "libringrtc.so"
        assert copy.destination == host.project_root / "src/node/build/linux/libringrtc-x64.node"
        assert phase.outputs == [(copy.destination, ArtifactKind.ADDON)]

    def test_linux_release_strips_on_copy(self, make_host, tools):
        """Release builds on Linux are stripped with the arch-specific tool."""
        host, phase = self._plan(make_host, RELEASE)
        strip = next(s for s in phase.steps if isinstance(s, Invocation) and "strip" in s.argv[0])
        assert strip.argv[0] == "/usr/bin/x86_64-linux-gnu-strip"
        assert strip.argv[-2:] == ("-o", str(host.project_root / "src/node/build/linux/libringrtc-x64.node"))
        assert not any(isinstance(s, CopyFile) for s in phase.steps)

    def test_linux_release_strip_fallback(self, make_host, tools):
        """Should fall back to the generic strip."""
        tools.discard("aarch64-linux-gnu-strip")
        _, phase = self._plan(make_host, RELEASE, triple="aarch64-unknown-linux-gnu", arch="arm64")
        assert "strip" in _programs(phase)

    def test_linux_release_no_strip(self, make_host, tools):
        """Should raise when no strip tool exists."""
        tools.discard("x86_64-linux-gnu-strip")
        tools.discard("strip")
        with pytest.raises(MissingDependencyError):
            self._plan(make_host, RELEASE)

    def test_release_symbol_file(self, make_host, tools):
        """Release should write a versioned symbol file."""
        host, phase = self._plan(make_host, RELEASE)
        sym = host.output_dir / "release" / "libringrtc-2.50.1-linux-x64-debuginfo.sym"
        assert (sym, ArtifactKind.SYMBOLS) in phase.outputs
        dump = next(s for s in phase.steps if isinstance(s, Invocation) and s.argv[0].endswith("dump_syms"))
        assert dump.argv[1] == str(host.cargo_target_dir / LINUX / "release" / "libringrtc.so")
        assert MakeDirs(sym.parent) in phase.steps

    def test_release_without_dump_syms(self, make_host, tools):
        """Without dump_syms there is no symbol file."""
        tools.discard("dump_syms")
        _, phase = self._plan(make_host, RELEASE)
        assert [kind for _, kind in phase.outputs] == [ArtifactKind.ADDON]

    def test_debug_has_no_symbol_file(self, make_host, tools):
        """Debug builds never write symbol files."""
        _, phase = self._plan(make_host, BuildRequest())
        assert "dump_syms" not in _programs(phase)

    def test_darwin_bundle_and_strip(self, make_host, tools):
        """Darwin should extract a dSYM, copy, then strip the copy."""
        host, phase = self._plan(make_host, RELEASE, triple=DARWIN, arch="arm64")
        assert _programs(phase) == ["cargo", "dsymutil", "strip", "dump_syms"]
        dest = host.project_root / "src/node/build/darwin/libringrtc-arm64.node"
        strip = next(s for s in phase.steps if isinstance(s, Invocation) and s.argv[0].endswith("/strip"))
        assert strip.argv[-1] == str(dest)
        dump = next(s for s in phase.steps if isinstance(s, Invocation) and s.argv[0].endswith("dump_syms"))
        assert dump.argv[1].endswith("libringrtc.dylib.dSYM")

    def test_windows_pdb_and_copy(self, make_host, tools):
        """Windows copies the DLL and reads symbols from the pdb."""
        host, phase = self._plan(make_host, RELEASE, triple=WINDOWS)
        assert "strip" not in _programs(phase)
        copy = next(s for s in phase.steps if isinstance(s, CopyFile))
        assert copy.source.name == "ringrtc.dll"
        assert copy.destination == host.project_root / "src/node/build/win32/libringrtc-x64.node"
        dump = next(s for s in phase.steps if isinstance(s, Invocation) and s.argv[0].endswith("dump_syms"))
        assert dump.argv[1].endswith("ringrtc.pdb")

    def test_cross_compile_adds_target(self, make_host, tools):
        """A target triple different from the host should be installed first."""
        _, phase = self._plan(make_host, BuildRequest(), triple=WINDOWS, arch="arm64")
        first = phase.steps[0]
        assert isinstance(first, Invocation)
        assert first.argv[1:] == ("target", "add", "aarch64-pc-windows-msvc")

    def test_cross_compile_needs_rustup(self, make_host, tools):
        """Cross-compiling without rustup is a missing dependency."""
        tools.discard("rustup")
        with pytest.raises(MissingDependencyError) as exc_info:
            self._plan(make_host, BuildRequest(), triple=WINDOWS, arch="arm64")
        assert exc_info.value.tool == "rustup"

    def test_native_build_skips_rustup(self, make_host, tools):
        """Building for the host triple should not touch rustup."""
        _, phase = self._plan(make_host, BuildRequest())
        assert "rustup" not in _programs(phase)

    def test_adm_tests_run_last(self, make_host, tools):
        """ADM tests run after the build and copy."""
        _, phase = self._plan(make_host, BuildRequest(test_adm=True))
        last = phase.steps[-1]
        assert isinstance(last, Invocation)
        assert last.argv[1] == "test"

    def test_missing_cargo(self, make_host, tools):
        """Should raise MissingDependencyError naming cargo."""
        tools.discard("cargo")
        with pytest.raises(MissingDependencyError) as exc_info:
            self._plan(make_host, BuildRequest())
        assert exc_info.value.tool == "cargo"

    @pytest.mark.parametrize("tool", ["dsymutil", "strip"])
    def test_darwin_tools_required_when_planning(self, make_host, tools, tool):
        """Darwin post-processing tools are checked before anything runs."""
        tools.discard(tool)
        with pytest.raises(MissingDependencyError) as exc_info:
            self._plan(make_host, BuildRequest(), triple=DARWIN, arch="arm64")
        assert exc_info.value.tool == tool

    def test_darwin_tools_resolved_on_path(self, make_host, tools):
        """Darwin post-processing runs the tools found on PATH."""
        _, phase = self._plan(make_host, BuildRequest(), triple=DARWIN, arch="arm64")
        argv0 = [s.argv[0] for s in phase.steps if isinstance(s, Invocation)]
        assert argv0 == ["/usr/bin/cargo", "/usr/bin/dsymutil", "/usr/bin/strip"]
