"""
Simulated trader activity.
Stands in for chain monitoring in development and paper environments.
"""
import random
from decimal import Decimal
from typing import Dict, List, Optional
from pumpfunds.detection.base_detector import BaseDetector, DetectedActivity, DetectionResult
from pumpfunds.models.trade_replications import TradeDirection
from pumpfunds.utils.constants import DEFAULT_ACTIVITY_PROBABILITY, DEFAULT_MAX_TRADE_FRACTION
from pumpfunds.utils.logging import get_logger

logger = get_logger(__name__)

class MockDetector(BaseDetector):
    """
    Coin-flip detector.

    With the configured probability a fund "trades" once per check, in a
    random direction, sized at a random fraction up to max_fraction.
    """

    name = "mock"

    def __init__(
        self,
        probability: float = DEFAULT_ACTIVITY_PROBABILITY,
        max_fraction: Decimal = DEFAULT_MAX_TRADE_FRACTION,
        rng: Optional[random.Random] = None
    ):
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"probability must be within [0, 1], got {probability}")
        self.probability = probability
        self.max_fraction = Decimal(str(max_fraction))
        self.rng = rng or random.Random()

    def detect(
        self,
        fund_id: int,
        wallets: List[str],
        cursors: Dict[str, Optional[str]]
    ) -> DetectionResult:
        if self.rng.random() >= self.probability:
            return DetectionResult()

        wallet = self.rng.choice(wallets)
        fraction = (Decimal(str(self.rng.random())) * self.max_fraction).quantize(Decimal('0.000001'))
        direction = TradeDirection.BUY.value if self.rng.random() > 0.5 else TradeDirection.SELL.value

        logger.info(
            "Simulated trader activity",
            fund_id=fund_id,
            wallet=wallet,
            direction=direction,
            fraction=str(fraction)
        )
        return DetectionResult(activities=[DetectedActivity(wallet=wallet, direction=direction, fraction=fraction)])
