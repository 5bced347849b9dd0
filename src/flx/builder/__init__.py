# flx-builder/src/flx/builder/__init__.py
"""
This package contains the packaging stage of the application build: it
compiles (or reuses) the program kernel, bundles assets, and assembles both
into a single distributable archive.
"""

from .config import BuildConfig, BuildPaths
from .models import (
    BuildResult,
    Fingerprint,
    KernelMode,
    PrecompiledMode,
    SnapshotMode,
)
from .packaging.assembler import (
    DYLIB_KEY,
    KERNEL_KEY,
    PLATFORM_KERNEL_KEY,
    SNAPSHOT_KEY,
    assemble,
)
from .packaging.orchestrator import BuildOrchestrator

__all__ = [
    "DYLIB_KEY",
    "KERNEL_KEY",
    "PLATFORM_KERNEL_KEY",
    "SNAPSHOT_KEY",
    "BuildConfig",
    "BuildOrchestrator",
    "BuildPaths",
    "BuildResult",
    "Fingerprint",
    "KernelMode",
    "PrecompiledMode",
    "SnapshotMode",
    "assemble",
]
