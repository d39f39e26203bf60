"""
Human Log -- formatter and helper for progress output.

Produces readable lines so the user can follow what pkgsrc is doing
without technical noise.

Example output:
    Scanning /usr/pkgsrc ...
      indexed 19283 packages (2140 ms)

    ==> archivers/libzip
      bmake build
      bmake install
      bmake clean
      bmake clean-depends
    ✓ archivers/libzip installed
"""

import logging
import sys

from .levels import HUMAN

# Keys added by the shared structlog processors; never passed to the formatter
_RESERVED_KEYS = frozenset({"event", "level", "logger", "timestamp", "_record", "_from_structlog"})


class HumanFormatter:
    """Formats progress events into readable text.

    Each event type has its own format. Unknown events return None and
    are not printed.
    """

    def format_event(self, event: str, **kw) -> str | None:
        """Format an event as readable text.

        Args:
            event: Event name (e.g. "index.scan.start", "build.step.start")
            **kw: Event parameters

        Returns:
            Formatted text, or None if the event has no defined format
        """
        match event:

            # ── INDEX ────────────────────────────────────────────────────
            case "index.scan.start":
                return f"Scanning {kw.get('root', '?')} ..."

            case "index.scan.complete":
                count = kw.get("packages", "?")
                ms = kw.get("build_time_ms")
                timing = f" ({ms:.0f} ms)" if isinstance(ms, (int, float)) else ""
                return f"  indexed {count} packages{timing}"

            case "index.cache.write":
                return f"  index cached at {kw.get('path', '?')}"

            case "index.cache.clear":
                return f"Removed index cache {kw.get('path', '?')}"

            # ── BUILD ────────────────────────────────────────────────────
            case "build.package.start":
                return f"\n==> {kw.get('package', '?')}"

            case "build.step.start":
                return f"  {_format_argv(kw.get('argv'))}"

            case "build.step.planned":
                return f"  [dry-run] {_format_argv(kw.get('argv'))}"

            case "build.step.complete":
                if kw.get("success", True):
                    return None
                code = kw.get("returncode", "?")
                return f"    FAILED (exit {code})"

            case "build.package.complete":
                return f"✓ {kw.get('package', '?')} installed"

            # ── UNINSTALL ────────────────────────────────────────────────
            case "uninstall.package.start":
                return f"\n==> removing {kw.get('package', '?')}"

            case "uninstall.package.complete":
                return f"✓ {kw.get('package', '?')} removed"

            case _:
                return None


class HumanLogHandler(logging.Handler):
    """Logging handler that filters HUMAN events and formats them.

    Only processes records at HUMAN level (25). Writes to stderr so
    stdout stays clean for search results.
    """

    def __init__(self, stream=None) -> None:
        super().__init__(level=HUMAN)
        self.stream = stream or sys.stderr
        self.formatter_inst = HumanFormatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.levelno != HUMAN:
                return

            event, kw = _split_record(record)
            formatted = self.formatter_inst.format_event(event, **kw)
            if formatted is not None:
                self.stream.write(formatted + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


class HumanLog:
    """Typed helper to emit HUMAN level logs from code.

    Instead of calling log.log(HUMAN, "event", ...) directly,
    use methods with clear semantic names.

    Usage:
        hlog = HumanLog(structlog.get_logger())
        hlog.scan_start("/usr/pkgsrc")
        hlog.step_start(["bmake", "build"])
    """

    def __init__(self, logger) -> None:
        self._log = logger

    def scan_start(self, root: str) -> None:
        self._log.log(HUMAN, "index.scan.start", root=root)

    def scan_complete(self, packages: int, build_time_ms: float) -> None:
        self._log.log(HUMAN, "index.scan.complete", packages=packages, build_time_ms=build_time_ms)

    def cache_write(self, path: str) -> None:
        self._log.log(HUMAN, "index.cache.write", path=path)

    def cache_clear(self, path: str) -> None:
        self._log.log(HUMAN, "index.cache.clear", path=path)

    def package_start(self, package: str) -> None:
        self._log.log(HUMAN, "build.package.start", package=package)

    def step_start(self, argv: list[str]) -> None:
        self._log.log(HUMAN, "build.step.start", argv=argv)

    def step_planned(self, argv: list[str]) -> None:
        self._log.log(HUMAN, "build.step.planned", argv=argv)

    def step_complete(self, argv: list[str], success: bool, returncode: int) -> None:
        self._log.log(
            HUMAN, "build.step.complete",
            argv=argv,
            success=success,
            returncode=returncode,
        )

    def package_installed(self, package: str) -> None:
        self._log.log(HUMAN, "build.package.complete", package=package)

    def uninstall_start(self, package: str) -> None:
        self._log.log(HUMAN, "uninstall.package.start", package=package)

    def uninstall_complete(self, package: str) -> None:
        self._log.log(HUMAN, "uninstall.package.complete", package=package)


def _split_record(record: logging.LogRecord) -> tuple[str, dict]:
    """Extract the event name and its parameters from a log record.

    With structlog's ProcessorFormatter pipeline the event dict travels
    as record.msg; plain stdlib records only carry a message string.
    """
    if isinstance(record.msg, dict):
        event_dict = record.msg
        event = str(event_dict.get("event", ""))
        kw = {k: v for k, v in event_dict.items() if k not in _RESERVED_KEYS}
        return event, kw
    return record.getMessage(), {}


def _format_argv(argv) -> str:
    if not argv:
        return "?"
    if isinstance(argv, str):
        return argv
    return " ".join(str(a) for a in argv)
