"""Thin CLI wrapper for ringrtc_build.

This module provides the command-line interfaces using Typer:
- ``ringrtc-build``: a single flag-driven command that builds WebRTC and/or
  the RingRTC desktop addon, or cleans their outputs
- ``ringrtc-aggregate``: packs the collected desktop build and symbol files

All business logic is delegated to core modules.
"""

import logging
from pathlib import Path
from typing import Annotated

import click
import typer
from rich.console import Console
from rich.logging import RichHandler
from typer.core import TyperCommand

from ringrtc_build import __version__
from ringrtc_build.config import get_settings, print_settings_json

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

console = Console()
err_console = Console(stderr=True)


def _usage_error_types() -> tuple[type[Exception], ...]:
    """Usage error classes of click and of the click copy typer parses with."""
    parser_usage_error = next(
        (c for c in typer.BadParameter.__mro__ if c.__name__ == "UsageError"),
        click.UsageError,
    )
    return tuple({click.UsageError, parser_usage_error})


USAGE_ERRORS = _usage_error_types()


class UsageExitCommand(TyperCommand):
    """Command that prints usage and exits 1 on bad flags (click uses 2)."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except USAGE_ERRORS as e:
            click.echo(ctx.get_usage(), err=True)
            click.echo(f"Error: {e.format_message()}", err=True)
            ctx.exit(1)


def configure_logging(level: str) -> None:
    """Send log records through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ringrtc-build version {__version__}")
        raise typer.Exit()


def show_config_callback(value: bool) -> None:
    """Print effective settings as JSON and exit."""
    if value:
        console.print(print_settings_json(get_settings()))
        raise typer.Exit()


app = typer.Typer(
    name="ringrtc-build",
    help="Build WebRTC and the RingRTC desktop addon for the host platform",
    add_completion=False,
)


@app.command(cls=UsageExitCommand, context_settings=CONTEXT_SETTINGS)
def build(
    ctx: typer.Context,
    debug: Annotated[
        bool, typer.Option("--debug", "-d", help="Build a debug variant (default)")
    ] = False,
    release: Annotated[
        bool, typer.Option("--release", "-r", help="Build a release variant")
    ] = False,
    webrtc_only: Annotated[
        bool, typer.Option("--webrtc-only", help="Only build WebRTC")
    ] = False,
    ringrtc_only: Annotated[
        bool, typer.Option("--ringrtc-only", help="Only build the RingRTC addon")
    ] = False,
    webrtc_tests: Annotated[
        bool, typer.Option("--webrtc-tests", help="Include WebRTC test targets")
    ] = False,
    archive_webrtc: Annotated[
        bool,
        typer.Option(
            "--archive-webrtc",
            help="Pack the WebRTC static library and license into a tarball",
        ),
    ] = False,
    test_adm: Annotated[
        bool,
        typer.Option(
            "--test-ringrtc-adm", help="Run the audio device module tests after building"
        ),
    ] = False,
    build_for_simulator: Annotated[
        bool,
        typer.Option(
            "--build-for-simulator", help="Include dummy audio file devices in WebRTC"
        ),
    ] = False,
    clean_outputs: Annotated[
        bool,
        typer.Option("--clean", "-c", help="Remove all build outputs and exit"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show planned steps without running them"),
    ] = False,
    show_config: Annotated[
        bool | None,
        typer.Option(
            "--show-config",
            help="Show effective configuration as JSON and exit",
            callback=show_config_callback,
            is_eager=True,
        ),
    ] = None,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Build WebRTC and the RingRTC desktop addon.

    The target architecture comes from TARGET_ARCH (x64, ia32, arm64) or
    the host. Outputs go to OUTPUT_DIR (default: out/) and
    src/node/build/<platform>/.
    """
    from ringrtc_build.errors import BuildError, InvalidArgumentsError
    from ringrtc_build.orchestrator import (
        build_request,
        clean,
        detect_host_environment,
        run,
    )

    settings = get_settings()
    configure_logging(settings.log_level)
    logger = logging.getLogger("ringrtc_build.cli")

    try:
        if clean_outputs:
            if any([debug, release, webrtc_only, ringrtc_only, webrtc_tests,
                    archive_webrtc, test_adm, build_for_simulator]):
                logger.warning("--clean ignores all build options")
            host = detect_host_environment(settings, toolchain_triple="")
            clean(host, dry_run=dry_run)
            if not dry_run:
                console.print("[green]✓ Build outputs removed[/green]")
            return

        request = build_request(
            debug=debug,
            release=release,
            webrtc_only=webrtc_only,
            ringrtc_only=ringrtc_only,
            webrtc_tests=webrtc_tests,
            archive_webrtc=archive_webrtc,
            test_adm=test_adm,
            build_for_simulator=build_for_simulator,
        )
        host = detect_host_environment(settings)
        artifacts = run(request, host, dry_run=dry_run)
    except InvalidArgumentsError as e:
        click.echo(ctx.get_usage(), err=True)
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=e.exit_code) from None
    except BuildError as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=e.exit_code) from None

    if dry_run:
        return

    console.print(
        f"[green]✓ Build complete ({request.build_type.value}, {request.scope.value})[/green]"
    )
    for artifact in artifacts:
        console.print(f"  {artifact.kind.value}: {artifact.path}")


aggregate_app = typer.Typer(
    name="ringrtc-aggregate",
    help="Aggregate desktop builds from all platforms for publishing",
    add_completion=False,
)


@aggregate_app.command(cls=UsageExitCommand, context_settings=CONTEXT_SETTINGS)
def aggregate(
    node_dir: Annotated[
        Path,
        typer.Option("--node-dir", help="The src/node directory holding build/"),
    ] = Path("src/node"),
    symbols_dir: Annotated[
        Path | None,
        typer.Option("--symbols-dir", help="Directory of collected .sym files"),
    ] = None,
    version: Annotated[
        str | None,
        typer.Option("--version", help="Package version (default: package.json)"),
    ] = None,
    update_package_json: Annotated[
        bool,
        typer.Option(
            "--update-package-json",
            help="Write the archive checksum into package.json",
        ),
    ] = False,
) -> None:
    """Pack src/node/build and arrange symbol files by version/platform/arch."""
    from ringrtc_build.aggregate import (
        arrange_symbols,
        create_prebuild_archive,
        set_prebuild_checksum,
    )
    from ringrtc_build.errors import BuildError
    from ringrtc_build.toolchain import read_package_version

    configure_logging(get_settings().log_level)

    package_json = node_dir / "package.json"
    effective_version = version or read_package_version(package_json)
    if effective_version is None:
        err_console.print(f"[red]Error: no version given and none in {package_json}[/red]")
        raise typer.Exit(code=1)

    try:
        archive = create_prebuild_archive(node_dir, effective_version)
    except BuildError as e:
        err_console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(code=e.exit_code) from None

    console.print(f"[green]✓ {archive.path}[/green]")
    console.print(f"  sha256: {archive.sha256}")

    if update_package_json:
        set_prebuild_checksum(package_json, archive.sha256)
        console.print(f"  Updated {package_json}")

    if symbols_dir is not None:
        moved = arrange_symbols(symbols_dir, effective_version)
        console.print(f"[bold]Arranged {len(moved)} symbol file(s):[/bold]")
        for path in moved:
            console.print(f"  {path}")


def main() -> None:
    """Entry point for ``ringrtc-build``."""
    app()


def aggregate_main() -> None:
    """Entry point for ``ringrtc-aggregate``."""
    aggregate_app()


if __name__ == "__main__":
    main()
