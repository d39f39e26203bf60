"""
HUMAN logging level -- readable progress output.

Custom level between INFO (20) and WARNING (30).
Does not indicate severity -- it marks the high-level progress lines the
user follows while the tree is indexed or packages are built.

Hierarchy:
    debug  (10) -> per-directory scan detail, full command lines
    info   (20) -> system operations (config loaded, cache hit)
    human  (25) -> * what pkgsrc is doing: scanning, building, removing
    warn   (30) -> non-fatal problems
    error  (40) -> errors
"""

import logging

import structlog

# Custom level: between INFO (20) and WARNING (30)
HUMAN = 25
logging.addLevelName(HUMAN, "HUMAN")


# Inject the .human() method into Python's Logger class
def _human_method(self, message, *args, **kwargs):
    if self.isEnabledFor(HUMAN):
        self._log(HUMAN, message, args, **kwargs)


logging.Logger.human = _human_method

# Register the level in structlog to avoid KeyError: 25
structlog.stdlib.LEVEL_TO_NAME[HUMAN] = "human"
