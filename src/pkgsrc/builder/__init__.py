"""
Builder module -- drives bmake and pkg_delete for install/uninstall.
"""

from .installer import (
    BuildStepError,
    PackageInstaller,
    PackageNotFoundError,
    UninstallError,
)
from .pipeline import BUILD_STEPS, StepResult, ToolNotFoundError, run_step

__all__ = [
    "BUILD_STEPS",
    "BuildStepError",
    "PackageInstaller",
    "PackageNotFoundError",
    "StepResult",
    "ToolNotFoundError",
    "UninstallError",
    "run_step",
]
