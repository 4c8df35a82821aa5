"""Submission step state machine.

Tracks one submission attempt through its steps and enforces their order.
Every transition first consults the cancellation token, so a cancelled
submission never starts the network or crypto work of its next step.
"""

from __future__ import annotations

from arlink.cancellation import CancellationToken
from arlink.models import SubmissionStep


class SubmissionStateMachine:
    """Finite state machine for the steps of a submission.

    Valid transitions::

        IDLE       -> VALIDATING
        VALIDATING -> PRICING    | IDLE
        PRICING    -> BUILDING   | IDLE
        BUILDING   -> SIGNING    | IDLE
        SIGNING    -> POSTING    | IDLE
        POSTING    -> ACCEPTED   | IDLE
        ACCEPTED   -> (terminal)

    Returning to ``IDLE`` marks a failed attempt that may be retried.

    Parameters
    ----------
    cancellation:
        Token checked before every forward transition.
    """

    VALID_TRANSITIONS: dict[SubmissionStep, set[SubmissionStep]] = {
        SubmissionStep.IDLE: {SubmissionStep.VALIDATING},
        SubmissionStep.VALIDATING: {SubmissionStep.PRICING, SubmissionStep.IDLE},
        SubmissionStep.PRICING: {SubmissionStep.BUILDING, SubmissionStep.IDLE},
        SubmissionStep.BUILDING: {SubmissionStep.SIGNING, SubmissionStep.IDLE},
        SubmissionStep.SIGNING: {SubmissionStep.POSTING, SubmissionStep.IDLE},
        SubmissionStep.POSTING: {SubmissionStep.ACCEPTED, SubmissionStep.IDLE},
        SubmissionStep.ACCEPTED: set(),
    }

    def __init__(self, cancellation: CancellationToken) -> None:
        self.state: SubmissionStep = SubmissionStep.IDLE
        self.history: list[SubmissionStep] = [SubmissionStep.IDLE]
        self._cancellation = cancellation

    def advance(self, new_state: SubmissionStep) -> None:
        """Move to *new_state*.

        Raises
        ------
        ArlinkCancelledError
            If cancellation was requested; the state is left unchanged.
        ValueError
            If the transition is not valid.
        """
        self._cancellation.raise_if_cancelled(new_state.value)
        self._move(new_state)

    def accept(self) -> None:
        """Mark the post as accepted.

        Does not consult the cancellation token: once the network has the
        transaction, cancelling cannot take it back.
        """
        self._move(SubmissionStep.ACCEPTED)

    def reset(self) -> None:
        """Abandon the current attempt and return to ``IDLE``."""
        if self.state is not SubmissionStep.IDLE:
            self._move(SubmissionStep.IDLE)

    def _move(self, new_state: SubmissionStep) -> None:
        allowed = self.VALID_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise ValueError(
                f"Invalid step transition: {self.state.value} -> {new_state.value}. "
                f"Allowed transitions from {self.state.value}: "
                f"{{{', '.join(sorted(s.value for s in allowed))}}}"
            )
        self.state = new_state
        self.history.append(new_state)

    @property
    def accepted(self) -> bool:
        return self.state is SubmissionStep.ACCEPTED
