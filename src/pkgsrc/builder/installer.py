"""
Package installer -- builds packages from the tree and removes them.

Install resolves each requested name against the index and runs the
bmake pipeline in the package directory:

    bmake build → bmake install → bmake clean → bmake clean-depends

Batches are strictly sequential. The first unknown name or failing step
stops the whole batch; steps already completed are not rolled back.
"""

from pathlib import Path

import structlog

from ..indexer.tree import PackageIndex, PackageRecord
from ..logging import HumanLog
from .pipeline import BUILD_STEPS, StepResult, run_step

logger = structlog.get_logger()


class PackageNotFoundError(LookupError):
    """A requested package name is not in the index."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Package '{name}' not found in the pkgsrc tree")


class BuildStepError(Exception):
    """A bmake step exited unsuccessfully."""

    def __init__(self, package: str, result: StepResult) -> None:
        self.package = package
        self.result = result
        super().__init__(
            f"'{' '.join(result.argv)}' failed for {package} ({result.describe_exit()})"
        )


class UninstallError(Exception):
    """The package removal command exited unsuccessfully."""

    def __init__(self, package: str, result: StepResult) -> None:
        self.package = package
        self.result = result
        super().__init__(f"Removing {package} failed ({result.describe_exit()})")


class PackageInstaller:
    """Runs the external build and removal tools for a pkgsrc tree."""

    def __init__(
        self,
        root: Path,
        make: str = "bmake",
        uninstall_tool: str = "pkg_delete",
        dry_run: bool = False,
    ) -> None:
        """Initialize the installer.

        Args:
            root: Root of the pkgsrc tree
            make: Build tool executable
            uninstall_tool: Package removal executable
            dry_run: Log the commands without running them
        """
        self.root = root
        self.make = make
        self.uninstall_tool = uninstall_tool
        self.dry_run = dry_run
        self.log = logger.bind(component="package_installer")
        self.hlog = HumanLog(self.log)

    def install(self, index: PackageIndex, names: list[str]) -> list[PackageRecord]:
        """Build and install each named package, in order.

        Returns:
            The records that were installed.

        Raises:
            PackageNotFoundError: A name is not in the index
            BuildStepError: A build step failed
        """
        installed: list[PackageRecord] = []
        for name in names:
            record = index.find(name)
            if record is None:
                self.log.error("build.package.not_found", package=name)
                raise PackageNotFoundError(name)
            self.install_one(record)
            installed.append(record)
        return installed

    def install_one(self, record: PackageRecord) -> list[StepResult]:
        """Run the full build pipeline for one package."""
        package_dir = self.root / record.category / record.name
        self.hlog.package_start(record.path)
        self.log.info("build.package.start", package=record.path, cwd=str(package_dir))

        results: list[StepResult] = []
        for step in BUILD_STEPS:
            result = self._run(step, [self.make, step], package_dir)
            results.append(result)
            if not result.success:
                self.log.error(
                    "build.step.failed",
                    package=record.path,
                    step=step,
                    returncode=result.returncode,
                )
                raise BuildStepError(record.path, result)

        self.hlog.package_installed(record.path)
        return results

    def uninstall(self, names: list[str]) -> list[str]:
        """Remove each named package, in order.

        Names are passed to the removal tool as given; they are not
        checked against the index.

        Raises:
            UninstallError: The removal tool failed
        """
        removed: list[str] = []
        for name in names:
            self.hlog.uninstall_start(name)
            result = self._run("uninstall", [self.uninstall_tool, name], self.root)
            if not result.success:
                self.log.error("uninstall.failed", package=name, returncode=result.returncode)
                raise UninstallError(name, result)
            self.hlog.uninstall_complete(name)
            removed.append(name)
        return removed

    def _run(self, step: str, argv: list[str], cwd: Path) -> StepResult:
        if self.dry_run:
            self.hlog.step_planned(argv)
            return StepResult(step=step, argv=tuple(argv), returncode=0, dry_run=True)

        self.hlog.step_start(argv)
        result = run_step(step, argv, cwd)
        self.hlog.step_complete(argv, result.success, result.returncode)
        return result
