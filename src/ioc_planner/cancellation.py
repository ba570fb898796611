"""Cooperative cancellation for analysis passes."""

import threading

from ioc_planner.errors import AnalysisCancelledError


class CancellationToken:
    """Signal that an in-progress analysis pass should be abandoned.

    Stages poll the token between descriptors. Cancelling is thread-safe and
    idempotent; a cancelled token stays cancelled.
    """

    def __init__(self) -> None:
        """Initialise an uncancelled token."""
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        """Whether cancellation has been requested."""
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise if cancellation has been requested.

        Raises:
            AnalysisCancelledError: If the token is cancelled.

        """
        if self._event.is_set():
            raise AnalysisCancelledError("Analysis pass was cancelled")


def check_cancelled(token: CancellationToken | None) -> None:
    """Raise if ``token`` is set and cancelled."""
    if token is not None:
        token.raise_if_cancelled()
