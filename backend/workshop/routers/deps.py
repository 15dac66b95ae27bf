# backend/workshop/routers/deps.py
from typing import Optional

from fastapi import Header

from ..core.config import LEDGER_SYSTEM_ACTOR
from ..domain.confirm import Confirm


def header_confirm(x_confirm_action: Optional[str] = Header(default=None)) -> Confirm:
    """
    Confirmation gate over HTTP: the client repeats the action label in the
    X-Confirm-Action header, e.g. `X-Confirm-Action: cancel work order`.
    """
    given = (x_confirm_action or "").strip().lower()

    def _confirm(action_label: str) -> bool:
        return bool(given) and given == action_label.lower()

    return _confirm


def actor_name(x_actor: Optional[str] = Header(default=None)) -> str:
    # Label written on ledger rows
    return (x_actor or "").strip() or LEDGER_SYSTEM_ACTOR
