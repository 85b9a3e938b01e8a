"""Result type for actions with best-effort side effects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class ActionOutcome(Generic[T]):
    """Primary result plus the secondary effects that failed along the way.

    A non-empty ``warnings`` list means the action itself succeeded but some
    notification (in-app, email or push) did not go out.
    """

    result: T
    warnings: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def warn(self, warning: str | None) -> None:
        if warning:
            self.warnings.append(warning)
