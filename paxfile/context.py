"""Per-call parse context.

A :class:`ParseContext` travels with one import or export call and holds
what older PAX readers kept in process-wide status variables: verbosity,
accumulated warnings and the last error seen.  Nothing here is shared
between calls unless the caller passes the same context twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from paxfile.errors import PaxError

logger = logging.getLogger("paxfile")


@dataclass
class ParseContext:
    """Verbosity, warnings and last error for one codec call.

    Parameters
    ----------
    verbosity : int
        0 logs nothing below errors, 1 adds summary lines, 2 and above
        trace individual header lines.
    logger : logging.Logger
        Destination for log records; defaults to the ``paxfile`` logger.
    """

    verbosity: int = 0
    logger: logging.Logger = field(default=logger, repr=False)
    warnings: list[str] = field(default_factory=list)
    last_error: PaxError | None = None

    def log(self, level: int, message: str) -> None:
        """Emit *message* if verbosity reaches *level* (INFO at 1, DEBUG above)."""
        if self.verbosity >= level:
            if level <= 1:
                self.logger.info(message)
            else:
                self.logger.debug(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        self.logger.warning(message)

    def fail(self, error: PaxError) -> PaxError:
        """Record *error* as the last error and return it for raising."""
        self.last_error = error
        self.log(1, f"{type(error).__name__}: {error}")
        return error
