"""Configuration settings for ringrtc_build.

Uses pydantic-settings for config parsing from environment variables
and defaults. The variable names match the ones the build scripts have
always consumed (TARGET_ARCH, OUTPUT_DIR, ...), so there is no prefix.
Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Build settings.

    Unset paths are resolved relative to ``project_root``; see the
    ``resolved_*`` helpers.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Paths
    project_root: Path = Field(
        default_factory=Path.cwd,
        description="Root of the RingRTC checkout",
    )
    output_dir: Path | None = Field(
        default=None,
        description="Base directory for generated build outputs (default: <root>/out)",
    )
    webrtc_src_dir: Path | None = Field(
        default=None,
        description="WebRTC source checkout (default: <root>/src/webrtc/src)",
    )
    cargo_target_dir: Path | None = Field(
        default=None,
        description="Cargo target directory (default: <root>/target)",
    )

    # Build selection
    target_arch: str | None = Field(
        default=None,
        description="Target architecture override (x64, ia32, arm64 or an alias)",
    )
    host_platform: str | None = Field(
        default=None,
        description="Platform name used in WebRTC archive names (default: from host)",
    )
    rustflags: str = Field(
        default="",
        description="Base RUSTFLAGS; the build appends to these",
    )

    # Versions
    project_version: str | None = Field(
        default=None,
        description="RingRTC version (default: src/node/package.json)",
    )
    webrtc_version: str | None = Field(
        default=None,
        description="WebRTC version (default: config/version.properties)",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    def resolved_output_dir(self) -> Path:
        return self._under_root(self.output_dir, Path("out"))

    def resolved_webrtc_src_dir(self) -> Path:
        return self._under_root(self.webrtc_src_dir, Path("src", "webrtc", "src"))

    def resolved_cargo_target_dir(self) -> Path:
        return self._under_root(self.cargo_target_dir, Path("target"))

    def _under_root(self, value: Path | None, default: Path) -> Path:
        path = value if value is not None else default
        if not path.is_absolute():
            path = self.project_root / path
        return path


def get_settings() -> Settings:
    """Get the build settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
