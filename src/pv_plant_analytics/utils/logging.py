# stdlib
from pathlib import Path
from datetime import datetime
from typing import Optional
from types import TracebackType
# projectlib
from pv_plant_analytics.utils.paths import validate_address
from pv_plant_analytics.utils.typing import (
    Verbosity,
    Address,
    ProgressListener
)

class Logger(object):
    """
    Callable pipeline logger with optional file persistence.

    Messages are filtered by verbosity and either printed to stdout or
    appended to ``log.txt``. An optional listener receives every
    emitted message, which is how callers observe pipeline progress.
    """

    def __init__(
        self,
        verbose: Verbosity = 0,
        log_dir: Address = Path.cwd(),
        write_log: bool = False,
        listener: Optional[ProgressListener] = None,
    ) -> None:
        """
        Initialize the logger.

        Parameters
        ----------
        verbose : Verbosity, default 0
            Verbosity threshold. Messages with a verbosity level less
            than or equal to this value will be emitted.
        log_dir : Address, default Path.cwd()
            Directory in which ``log.txt`` is written if `write_log` is
            True.
        write_log : bool, default False
            If True, messages are appended to a log file. If False,
            messages are printed to stdout.
        listener : ProgressListener, optional
            Called with the unformatted message each time a message is
            emitted.
        """
        self.verbose = verbose
        self.write_log = write_log
        self.listener = listener
        # Only touch the filesystem when file logging is requested
        if write_log:
            self.log_path = validate_address(log_dir, mkdir=True) / "log.txt"
        else:
            self.log_path = Path(log_dir) / "log.txt"

    def __call__(self, msg: str, verbosity: int = 0) -> None:
        """
        Emit a log message if the verbosity threshold is met.

        Parameters
        ----------
        msg : str
            Message to be logged.
        verbosity : int, default 0
            Verbosity level associated with the message. The message
            is emitted only if `self.verbose >= verbosity`.
        """
        if self.verbose < verbosity:
            return
        formatted = self._format(msg)
        if self.write_log:
            self.write(formatted)
        else:
            print(formatted)
        if self.listener is not None:
            self.listener(msg)

    def write(self, msg: str) -> None:
        """Append a formatted message to the log file."""
        with open(self.log_path, "a", encoding="utf-8") as file:
            file.write(msg + "\n")

    def _format(self, msg: str) -> str:
        ts = datetime.now().isoformat(timespec="seconds")
        return f"[{ts}] {msg}"

    def __enter__(self) -> "Logger":
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
        ) -> None:
        pass
