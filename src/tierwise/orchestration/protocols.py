"""Re-export orchestration protocols from core."""

from __future__ import annotations

from tierwise.core.protocols import ISpecialist
from tierwise.core.types import DomainClassifier

__all__ = ["DomainClassifier", "ISpecialist"]
