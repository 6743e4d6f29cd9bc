"""Best-effort follow-up work that must never undo a committed mutation.

Notification rows and customer emails are attempted after the primary write
has been committed. Their outcomes are collected on a ``SideEffectReport`` so
callers and tests can see what was delivered without the failure propagating.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class SideEffectOutcome:
    name: str
    ok: bool
    error: str | None = None


@dataclass
class SideEffectReport:
    outcomes: list[SideEffectOutcome] = field(default_factory=list)

    def record(self, name: str, ok: bool, error: str | None = None) -> None:
        self.outcomes.append(SideEffectOutcome(name=name, ok=ok, error=error))

    @property
    def failed(self) -> list[str]:
        return [outcome.name for outcome in self.outcomes if not outcome.ok]

    @property
    def delivered(self) -> list[str]:
        return [outcome.name for outcome in self.outcomes if outcome.ok]

    def succeeded(self, name: str) -> bool:
        return any(outcome.name == name and outcome.ok for outcome in self.outcomes)

    def as_dict(self) -> dict:
        return {outcome.name: outcome.ok for outcome in self.outcomes}


@dataclass
class Outcome(Generic[T]):
    """A primary result together with the report of its side effects."""

    value: T
    side_effects: SideEffectReport = field(default_factory=SideEffectReport)


def attempt_side_effect(
    report: SideEffectReport,
    name: str,
    action: Callable[[], object],
    *,
    db: Session | None = None,
) -> bool:
    """Run ``action``; log and record a failure instead of raising it.

    When ``db`` is given the action's writes are committed on success and
    rolled back on failure, leaving the session usable for the caller.
    """
    try:
        action()
        if db is not None:
            db.commit()
    except Exception as exc:
        if db is not None:
            db.rollback()
        logger.error('Side effect %s failed: %s', name, exc, exc_info=True)
        report.record(name, False, str(exc))
        return False
    report.record(name, True)
    return True
