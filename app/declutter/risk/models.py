"""Risk assessment models.

This module defines the discrete risk levels and the immutable
assessment records produced by the risk auditor.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any


class RiskLevel(IntEnum):
    """Discrete risk bucket, ordered from safest to most dangerous.

    Attributes:
        MINIMAL: Safe to auto-clean.
        LOW: Safe with notification.
        MEDIUM: Warn the user.
        HIGH: Require explicit confirmation.
        CRITICAL: Never delete.
    """

    MINIMAL = 0
    LOW = 25
    MEDIUM = 50
    HIGH = 75
    CRITICAL = 100

    @classmethod
    def from_score(cls, score: int) -> "RiskLevel":
        """Map a 0-100 risk score onto its level.

        Thresholds: >=90 critical, 70-89 high, 40-69 medium,
        20-39 low, <20 minimal.
        """
        if score >= 90:
            return cls.CRITICAL
        if score >= 70:
            return cls.HIGH
        if score >= 40:
            return cls.MEDIUM
        if score >= 20:
            return cls.LOW
        return cls.MINIMAL

    @property
    def label(self) -> str:
        """Lower-case name for display."""
        return self.name.lower()


@dataclass(frozen=True, slots=True)
class RiskFinding:
    """Partial score returned by one audit check.

    Attributes:
        check: Name of the check that fired.
        score: Partial risk score (0-100).
        message: Human-readable reason.
    """

    check: str
    score: int
    message: str


@dataclass(frozen=True, slots=True)
class RiskAssessment:
    """Result of auditing one path.

    Attributes:
        path: The audited path.
        score: Aggregate risk score (max over findings, 0-100).
        message: Message of the highest-scoring finding.
        findings: Every finding that fired, in check order.
        timestamp: When the audit ran.
    """

    path: str
    score: int
    message: str | None = None
    findings: tuple[RiskFinding, ...] = ()
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        """Validate the aggregate score."""
        if not (0 <= self.score <= 100):
            msg = f"Risk score must be between 0 and 100, got {self.score}"
            raise ValueError(msg)

    @property
    def level(self) -> RiskLevel:
        """Risk level derived from the score."""
        return RiskLevel.from_score(self.score)

    @property
    def is_blocking(self) -> bool:
        """Whether the item must be kept out of any "safe" bucket."""
        return self.level >= RiskLevel.HIGH

    @property
    def details(self) -> dict[str, Any]:
        """Structured detail map, keyed by check name."""
        return {finding.check: {"score": finding.score, "message": finding.message} for finding in self.findings}


@dataclass(frozen=True, slots=True)
class BatchRiskAssessment:
    """Advisory aggregate over a batch of paths.

    Never used to gate individual items.

    Attributes:
        item_count: Number of audited paths.
        total_score: Sum of item scores plus batch penalties (unbounded).
        penalties: Penalty name to points added.
        assessments: Per-path assessments.
    """

    item_count: int
    total_score: int
    penalties: dict[str, int]
    assessments: tuple[RiskAssessment, ...]

    @property
    def level(self) -> RiskLevel:
        """Level of the highest individual assessment."""
        if not self.assessments:
            return RiskLevel.MINIMAL
        return max(assessment.level for assessment in self.assessments)
