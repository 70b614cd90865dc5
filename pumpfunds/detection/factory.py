"""Detector selection from settings."""
from decimal import Decimal
from pumpfunds.detection.base_detector import BaseDetector
from pumpfunds.detection.mock_detector import MockDetector
from pumpfunds.detection.onchain_detector import OnChainDetector, SolanaRpcClient
from pumpfunds.utils.constants import DEFAULT_SIGNATURE_MAX_PAGES
from config.settings import get_settings, get_scheduler_config


def get_detector(kind: str = None) -> BaseDetector:
    """
    Build the configured activity detector.

    Args:
        kind: 'mock' or 'onchain'; defaults to the ACTIVITY_DETECTOR setting

    Raises:
        ValueError: unknown detector kind
    """
    settings = get_settings()
    detection = get_scheduler_config()['detection']
    kind = (kind or settings.ACTIVITY_DETECTOR).lower()

    if kind == MockDetector.name:
        return MockDetector(
            probability=detection['mock']['activity_probability'],
            max_fraction=Decimal(str(detection['mock']['max_trade_fraction']))
        )
    if kind == OnChainDetector.name:
        client = SolanaRpcClient(settings.SOLANA_RPC_URL, timeout=settings.SOLANA_RPC_TIMEOUT_SECONDS)
        return OnChainDetector(
            client,
            fetch_limit=detection['onchain']['signature_fetch_limit'],
            max_pages=detection['onchain'].get('max_signature_pages', DEFAULT_SIGNATURE_MAX_PAGES)
        )

    raise ValueError(f"Unknown activity detector: {kind}")
