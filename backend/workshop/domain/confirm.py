# backend/workshop/domain/confirm.py
"""
Human confirmation gate for destructive actions (cancel / delete).

The core only asks; the caller decides how a human answers (HTTP header,
dialog, or an automated policy).
"""
from typing import Callable, Optional

from .errors import PreconditionFailed

Confirm = Callable[[str], bool]


def always_confirm(action_label: str) -> bool:
    return True


def never_confirm(action_label: str) -> bool:
    return False


def require_confirmation(confirm: Optional[Confirm], action_label: str) -> None:
    if confirm is None or not confirm(action_label):
        raise PreconditionFailed(
            f"Action '{action_label}' was not confirmed",
            missing="confirmation",
            action=action_label,
        )
