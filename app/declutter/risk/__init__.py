"""Risk scoring engine.

This module provides the auditor that rates how dangerous it is to
delete a path, and the static rule tables it is built on.
"""

from declutter.risk.auditor import RiskAuditor
from declutter.risk.models import BatchRiskAssessment, RiskAssessment, RiskFinding, RiskLevel
from declutter.risk.rules import is_critical_path

__all__ = [
    "BatchRiskAssessment",
    "RiskAssessment",
    "RiskAuditor",
    "RiskFinding",
    "RiskLevel",
    "is_critical_path",
]
