"""Assumption ledger and calculation log for a single fault-study run.

Every default the engine infers (an X/R ratio, a power unit, a cable
temperature) is appended as an ``assumption``; every non-blocking
plausibility finding is appended as a ``warning`` and also emitted through
the ``logging`` module. Both lists are ordered and append-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from engine.network.components import StudySettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEntry:
    """One assumption or warning recorded during a run."""
    kind: str       # "assumption" or "warning"
    category: str   # e.g. "transformer", "cable", "short_circuit"
    subject: str    # component or bus name
    message: str

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind,
            "category": self.category,
            "subject": self.subject,
            "message": self.message,
        }


@dataclass
class AssumptionLedger:
    """Ordered, append-only record of assumptions and warnings."""
    _entries: list[LedgerEntry] = field(default_factory=list)

    def assume(self, category: str, subject: str, message: str) -> None:
        self._entries.append(LedgerEntry("assumption", category, subject, message))
        logger.debug("Assumption [%s] %s: %s", category, subject, message)

    def warn(self, category: str, subject: str, message: str) -> None:
        self._entries.append(LedgerEntry("warning", category, subject, message))
        logger.warning(
            "[%s] %s: %s", category, subject, message,
            extra={"category": category, "subject": subject},
        )

    @property
    def entries(self) -> tuple[LedgerEntry, ...]:
        return tuple(self._entries)

    @property
    def assumptions(self) -> list[LedgerEntry]:
        return [e for e in self._entries if e.kind == "assumption"]

    @property
    def warnings(self) -> list[LedgerEntry]:
        return [e for e in self._entries if e.kind == "warning"]

    def __len__(self) -> int:
        return len(self._entries)

    def to_list(self) -> list[dict[str, str]]:
        return [e.to_dict() for e in self._entries]


@dataclass(frozen=True)
class LogStep:
    """A timestamped pipeline step."""
    timestamp: str
    step: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "step": self.step,
            "message": self.message,
            "data": dict(self.data),
        }


@dataclass
class CalculationLog:
    """Ordered log of the pipeline stages a run went through."""
    _steps: list[LogStep] = field(default_factory=list)

    def step(self, step: str, message: str, **data: Any) -> None:
        ts = datetime.now(timezone.utc).isoformat()
        self._steps.append(LogStep(ts, step, message, data))
        logger.info("%s: %s", step, message)

    @property
    def steps(self) -> tuple[LogStep, ...]:
        return tuple(self._steps)

    def to_list(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self._steps]


@dataclass
class RunState:
    """Per-invocation context threaded through every pipeline stage.

    A new RunState is built for each run; nothing here is shared between runs.
    """
    settings: StudySettings
    ledger: AssumptionLedger = field(default_factory=AssumptionLedger)
    log: CalculationLog = field(default_factory=CalculationLog)
