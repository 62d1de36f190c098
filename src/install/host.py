"""Host collaborator: confirmation prompts, progress and fatal errors.

The engine never talks to a console directly. ``ConsoleHost`` prompts on a
terminal; ``NonInteractiveHost`` answers every prompt with a fixed reply and
records the questions, which keeps the engine testable.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, NoReturn, Optional, TextIO, Tuple

from common.logging_utils import extra_context
from install.errors import InstallError

logger = logging.getLogger(__name__)


class ConfirmResult(Enum):
    """Answers to a confirmation prompt."""
    YES = "yes"
    NO = "no"
    YES_TO_ALL = "yesToAll"
    NO_TO_ALL = "noToAll"

    @property
    def accepted(self) -> bool:
        return self in (ConfirmResult.YES, ConfirmResult.YES_TO_ALL)


class InstallHost(ABC):
    """Capabilities the install engine needs from its host."""

    @abstractmethod
    def confirm(self, message: str, title: str) -> ConfirmResult:
        """Ask the user a yes/no/yes-to-all/no-to-all question."""

    @abstractmethod
    def report_progress(self, activity_id: int, label: str, percent: int) -> None:
        """Report progress for a long-running activity."""

    def fail(self, error: InstallError) -> NoReturn:
        """Log a fatal error with its context and terminate the operation."""
        logger.error(
            "%s",
            error,
            extra=extra_context(
                event="install_error",
                component="host",
                outcome=error.kind,
                package_id=error.package_id,
                repository=error.repository,
            ),
        )
        raise error


class NonInteractiveHost(InstallHost):
    """Answers every prompt with ``answer``; prompts are kept in ``prompts``."""

    def __init__(self, answer: ConfirmResult = ConfirmResult.NO):
        self.answer = answer
        self.prompts: List[Tuple[str, str]] = []
        self.progress: List[Tuple[int, str, int]] = []

    def confirm(self, message: str, title: str) -> ConfirmResult:
        self.prompts.append((title, message))
        logger.info("%s: %s -> %s (non-interactive)", title, message, self.answer.value)
        return self.answer

    def report_progress(self, activity_id: int, label: str, percent: int) -> None:
        self.progress.append((activity_id, label, percent))


_CHOICES = {
    "y": ConfirmResult.YES,
    "yes": ConfirmResult.YES,
    "a": ConfirmResult.YES_TO_ALL,
    "n": ConfirmResult.NO,
    "no": ConfirmResult.NO,
    "l": ConfirmResult.NO_TO_ALL,
}


class ConsoleHost(InstallHost):
    """Terminal host; progress lines are suppressed when ``quiet``."""

    def __init__(
        self,
        quiet: bool = False,
        input_func: Callable[[str], str] = input,
        stream: Optional[TextIO] = None,
    ):
        self.quiet = quiet
        self._input = input_func
        self._stream = stream or sys.stderr

    def confirm(self, message: str, title: str) -> ConfirmResult:
        self._stream.write(f"\n{title}\n{message}\n")
        prompt = "[Y] Yes  [A] Yes to All  [N] No  [L] No to All (default is \"N\"): "
        while True:
            try:
                reply = self._input(prompt).strip().lower()
            except EOFError:
                return ConfirmResult.NO
            if not reply:
                return ConfirmResult.NO
            if reply in _CHOICES:
                return _CHOICES[reply]
            self._stream.write("Please answer Y, A, N or L.\n")

    def report_progress(self, activity_id: int, label: str, percent: int) -> None:
        if self.quiet:
            return
        self._stream.write(f"[{percent:3d}%] {label}\n")
        self._stream.flush()
