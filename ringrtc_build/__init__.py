"""RingRTC build orchestrator - desktop build variants for WebRTC and the Node addon.

This package translates a target architecture, build type, and a handful of
options into an ordered sequence of external tool invocations (gn, ninja,
cargo, symbol tooling) with deterministic output names.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
