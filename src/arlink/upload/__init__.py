"""Submission and confirmation tracking.

Exports
-------
TransactionSubmitter
    Build, sign and post a transaction with bounded retries.
ConfirmationTracker
    Promote pending ledger entries on block inclusion.
SubmissionStateMachine
    Step ordering for one submission attempt.
build_tags
    Standard and optional metadata tags for image transactions.
"""

from .retries import Outcome, compute_backoff, should_retry
from .state import SubmissionStateMachine
from .submitter import TransactionSubmitter, build_tags
from .tracker import ConfirmationTracker

__all__ = [
    "ConfirmationTracker",
    "Outcome",
    "SubmissionStateMachine",
    "TransactionSubmitter",
    "build_tags",
    "compute_backoff",
    "should_retry",
]
