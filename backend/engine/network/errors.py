"""Error kinds raised by the fault-study engine.

Blocking errors (ValidationError, TopologyError) abort a run before any
result is produced. ArcFlashNotApplicable is bus-scoped: the runner turns it
into an unevaluated arc-flash record and carries on with the other buses.
"""

from __future__ import annotations


class FaultStudyError(Exception):
    """Base class for all fault-study engine errors."""


class ValidationError(FaultStudyError):
    """Input is unusable; carries every violation found, not just the first."""

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__(
            f"{len(self.violations)} validation error(s): " + "; ".join(self.violations)
        )


class TopologyError(FaultStudyError):
    """Component references cannot be resolved into a connected bus graph."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Topology error: " + "; ".join(self.problems))


class ArcFlashNotApplicable(FaultStudyError):
    """Arc-flash evaluation skipped for a bus; lists the missing/out-of-range inputs."""

    def __init__(self, bus_name: str, missing_fields: list[str]):
        self.bus_name = bus_name
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Arc flash not evaluated at {bus_name}: " + ", ".join(self.missing_fields)
        )
