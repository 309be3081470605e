"""
State Transition Evaluator — decides whether a notification is a first approval.
"""
from typing import Optional

APPROVED = "approved"


def normalize_status(status: Optional[str]) -> str:
    return (status or "").strip().lower()


def is_approval_transition(previous_status: Optional[str], fetched_status: Optional[str]) -> bool:
    """True only when the gateway now says approved and the stored status does not.

    Redeliveries (approved -> approved), reversals (approved -> anything) and
    every non-approved outcome are not transitions.
    """
    return (
        normalize_status(fetched_status) == APPROVED
        and normalize_status(previous_status) != APPROVED
    )
