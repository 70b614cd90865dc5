"""
Abstract trader activity detector.
All detectors must implement this interface.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

@dataclass(frozen=True)
class DetectedActivity:
    """
    One trade made by a fund's trader wallet since the previous check.

    fraction is the trade's size relative to the trader's capital; each
    investor replicates that same fraction of their own investment.
    """
    wallet: str
    direction: str
    fraction: Decimal
    source_signature: Optional[str] = None

@dataclass
class DetectionResult:
    """
    Output of one detector check for a fund.

    cursors maps each wallet to the newest signature now accounted for.
    Stateless detectors leave it as None and nothing is persisted.
    """
    activities: List[DetectedActivity] = field(default_factory=list)
    cursors: Optional[Dict[str, Optional[str]]] = None

class BaseDetector(ABC):
    """
    Decides whether a fund's trader wallets traded since the last check.

    Detectors never touch the database. The monitor hands them the
    persisted cursors and stores whatever cursors they return, so network
    calls happen with no connection checked out.
    """

    name = "base"

    @abstractmethod
    def detect(
        self,
        fund_id: int,
        wallets: List[str],
        cursors: Dict[str, Optional[str]]
    ) -> DetectionResult:
        """
        Return new trading activity for the fund's trader wallets.

        Args:
            fund_id: Fund being checked (for logging)
            wallets: The fund's trader wallets, at least one
            cursors: Last signature seen per wallet; missing or None when
                the wallet has never been checked

        Returns:
            DetectionResult with trades oldest first
        """
        pass
