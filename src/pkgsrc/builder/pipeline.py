"""
External command execution for the build pipeline.

Every external step (bmake targets, pkg_delete) goes through run_step:
one synchronous subprocess, output captured, stdin closed so a build
never waits for input, no timeout. Output bytes that are not UTF-8
are replaced rather than failing the step.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

logger = structlog.get_logger()

# bmake targets run for every installed package, in order
BUILD_STEPS: tuple[str, ...] = ("build", "install", "clean", "clean-depends")


class ToolNotFoundError(Exception):
    """The external executable is not on PATH."""

    def __init__(self, tool: str) -> None:
        self.tool = tool
        super().__init__(f"'{tool}' was not found on PATH")


@dataclass(frozen=True)
class StepResult:
    """Outcome of one external command."""

    step: str
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def signaled(self) -> bool:
        """True if the process was killed by a signal instead of exiting."""
        return self.returncode < 0

    def describe_exit(self) -> str:
        if self.signaled:
            return f"killed by signal {-self.returncode}"
        return f"exit code {self.returncode}"


def run_step(step: str, argv: list[str], cwd: Path) -> StepResult:
    """Run one external command and capture its output.

    Args:
        step: Step name, used in results and logs (e.g. "build")
        argv: Command and arguments
        cwd: Working directory

    Returns:
        StepResult with the exit status and captured output.

    Raises:
        ToolNotFoundError: If argv[0] cannot be executed because it does not exist
    """
    logger.debug("build.step.exec", step=step, argv=argv, cwd=str(cwd))
    try:
        proc = subprocess.run(
            argv,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            stdin=subprocess.DEVNULL,
        )
    except FileNotFoundError as e:
        # A missing cwd also raises FileNotFoundError; only the tool is ours to report
        if e.filename not in (None, argv[0]):
            raise
        raise ToolNotFoundError(argv[0]) from e

    result = StepResult(
        step=step,
        argv=tuple(argv),
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
    logger.debug(
        "build.step.exit",
        step=step,
        returncode=result.returncode,
        stdout_bytes=len(result.stdout),
        stderr_bytes=len(result.stderr),
    )
    return result
