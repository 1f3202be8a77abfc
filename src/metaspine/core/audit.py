"""Audit stamps attached to every aspect write."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from metaspine.core.errors import ValidationError
from metaspine.core.timestamps import millis_to_datetime, now_millis
from metaspine.core.urn import Urn

# Stored in a signed 64-bit column.
MAX_TIME = 2**63 - 1


@dataclass(frozen=True, slots=True)
class AuditStamp:
    """
    Who wrote an aspect version, and when.

    Attributes:
        actor: URN of the principal that made the change
        time: Epoch milliseconds of the change
        impersonator: URN of the principal acting on the actor's behalf, if any
    """

    actor: Urn
    time: int
    impersonator: Urn | None = None

    def __post_init__(self):
        if not isinstance(self.actor, Urn):
            raise ValidationError("AuditStamp actor must be a Urn", field="actor", value=self.actor)
        if self.impersonator is not None and not isinstance(self.impersonator, Urn):
            raise ValidationError(
                "AuditStamp impersonator must be a Urn", field="impersonator", value=self.impersonator
            )
        if isinstance(self.time, bool) or not isinstance(self.time, int) or not 0 <= self.time <= MAX_TIME:
            raise ValidationError(
                "AuditStamp time must be epoch millis in [0, MAX_TIME]", field="time", value=self.time
            )

    @classmethod
    def now(cls, actor: Urn, impersonator: Urn | None = None) -> AuditStamp:
        """Stamp the current time for ``actor``."""
        return cls(actor=actor, time=now_millis(), impersonator=impersonator)

    @property
    def timestamp(self) -> datetime:
        return millis_to_datetime(self.time)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"actor": str(self.actor), "time": self.time}
        if self.impersonator is not None:
            result["impersonator"] = str(self.impersonator)
        return result


# The well-known system actor used for snapshot bootstrap writes. Time zero
# marks the value as predating any live write.
BOOTSTRAP_ACTOR = Urn.from_type_specific("dummy", "unknown")
BOOTSTRAP_AUDIT_STAMP = AuditStamp(actor=BOOTSTRAP_ACTOR, time=0)


__all__ = [
    "AuditStamp",
    "BOOTSTRAP_ACTOR",
    "BOOTSTRAP_AUDIT_STAMP",
    "MAX_TIME",
]
