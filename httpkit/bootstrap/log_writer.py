"""Byte sink that forwards writes to the logger at debug verbosity."""

import logging
from typing import Optional, Union

from httpkit.bootstrap.logging_setup import LOGGER_NAME, TRACE

VERBOSE_LEVELS = (TRACE, logging.DEBUG)


class LogWriter:
    """File-like sink for third-party output that should only appear when debugging.

    Writes are logged at DEBUG, prefixed with ``message``, when the logger's
    effective level is exactly TRACE or DEBUG. At any other level the data is dropped
    and ``write`` reports zero bytes consumed.
    """

    def __init__(self, message: str, logger: Optional[logging.Logger] = None) -> None:
        self.message = message
        self.logger = logger if logger is not None else logging.getLogger(LOGGER_NAME)

    def write(self, data: Union[bytes, str]) -> int:
        if self.logger.getEffectiveLevel() not in VERBOSE_LEVELS:
            return 0
        text = data.decode(errors="replace") if isinstance(data, bytes) else data
        self.logger.debug("%s: %s", self.message, text)
        return len(data)

    def flush(self) -> None:
        """Nothing is buffered."""

    def writable(self) -> bool:
        return True
