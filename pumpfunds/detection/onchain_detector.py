"""
On-chain trader activity detection over Solana JSON-RPC.

Diffs each trader wallet's transaction history against the last signature
seen for that fund, and sizes each new trade by the wallet's SOL balance
change relative to its balance before the trade.
"""
import itertools
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import requests
from pumpfunds.detection.base_detector import BaseDetector, DetectedActivity, DetectionResult
from pumpfunds.models.trade_replications import TradeDirection
from pumpfunds.utils.constants import (
    API_TIMEOUT_SHORT, DEFAULT_SIGNATURE_FETCH_LIMIT, DEFAULT_SIGNATURE_MAX_PAGES
)
from pumpfunds.utils.logging import get_logger

logger = get_logger(__name__)


class SolanaRpcError(RuntimeError):
    """The RPC node returned an error or an unusable response."""


class SolanaRpcClient:
    """Minimal JSON-RPC client for the calls the detector needs."""

    def __init__(self, rpc_url: str, timeout: int = API_TIMEOUT_SHORT, session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        self._ids = itertools.count(1)

    def call(self, method: str, params: list):
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            raise SolanaRpcError(f"{method} failed: {e}") from e

        if body.get('error'):
            raise SolanaRpcError(f"{method} returned error: {body['error']}")
        return body.get('result')

    def get_signatures(
        self,
        address: str,
        limit: int,
        until: Optional[str] = None,
        before: Optional[str] = None
    ) -> List[Dict]:
        """
        Signatures for address, newest first.

        until stops the walk at (excluding) that signature; before starts it
        just below that signature, for paging backwards.
        """
        options = {"limit": limit}
        if until:
            options["until"] = until
        if before:
            options["before"] = before
        return self.call("getSignaturesForAddress", [address, options]) or []

    def get_transaction(self, signature: str) -> Optional[Dict]:
        return self.call(
            "getTransaction",
            [signature, {"encoding": "json", "maxSupportedTransactionVersion": 0}]
        )


class OnChainDetector(BaseDetector):
    """
    Detects real trades by the fund's trader wallets.

    The first time a wallet is seen for a fund only its newest signature is
    recorded; history before that point is never replicated. After that,
    every signature newer than the cursor is walked page by page.
    """

    name = "onchain"

    def __init__(
        self,
        client: SolanaRpcClient,
        fetch_limit: int = DEFAULT_SIGNATURE_FETCH_LIMIT,
        max_pages: int = DEFAULT_SIGNATURE_MAX_PAGES
    ):
        self.client = client
        self.fetch_limit = fetch_limit
        self.max_pages = max_pages

    def detect(
        self,
        fund_id: int,
        wallets: List[str],
        cursors: Dict[str, Optional[str]]
    ) -> DetectionResult:
        result = DetectionResult(cursors={})
        for wallet in wallets:
            activities, cursor = self._detect_wallet(fund_id, wallet, cursors.get(wallet))
            result.activities.extend(activities)
            result.cursors[wallet] = cursor
        return result

    def _detect_wallet(
        self,
        fund_id: int,
        wallet: str,
        last_seen: Optional[str]
    ) -> Tuple[List[DetectedActivity], Optional[str]]:
        if last_seen is None:
            newest = self.client.get_signatures(wallet, limit=1)
            logger.info("Trader wallet cursor initialised", fund_id=fund_id, wallet=wallet)
            return [], newest[0]['signature'] if newest else None

        signatures = self._signatures_since(fund_id, wallet, last_seen)
        if not signatures:
            return [], last_seen

        activities = []
        for entry in reversed(signatures):
            if entry.get('err'):
                continue
            activity = self._to_activity(wallet, entry['signature'])
            if activity is not None:
                activities.append(activity)

        logger.info(
            "Trader wallet activity",
            fund_id=fund_id,
            wallet=wallet,
            new_signatures=len(signatures),
            trades=len(activities)
        )
        return activities, signatures[0]['signature']

    def _signatures_since(self, fund_id: int, wallet: str, last_seen: str) -> List[Dict]:
        """Every signature newer than last_seen, newest first."""
        signatures = []
        before = None
        for _ in range(self.max_pages):
            page = self.client.get_signatures(wallet, limit=self.fetch_limit, until=last_seen, before=before)
            signatures.extend(page)
            if len(page) < self.fetch_limit:
                return signatures
            before = page[-1]['signature']

        logger.warning(
            "Trader wallet backlog exceeds page budget; older signatures not replicated",
            fund_id=fund_id,
            wallet=wallet,
            fetched=len(signatures),
            max_pages=self.max_pages
        )
        return signatures

    def _to_activity(self, wallet: str, signature: str) -> Optional[DetectedActivity]:
        tx = self.client.get_transaction(signature)
        if not tx or not tx.get('meta'):
            return None

        meta = tx['meta']
        account_keys = tx.get('transaction', {}).get('message', {}).get('accountKeys', [])
        keys = [k['pubkey'] if isinstance(k, dict) else k for k in account_keys]
        if wallet not in keys:
            return None

        index = keys.index(wallet)
        pre = int(meta['preBalances'][index])
        post = int(meta['postBalances'][index])
        delta = post - pre
        if index == 0:
            # Fee payer: network fee is not part of the trade
            delta += int(meta.get('fee', 0))

        if delta == 0 or pre <= 0:
            return None

        fraction = min(Decimal(abs(delta)) / Decimal(pre), Decimal(1))
        direction = TradeDirection.BUY.value if delta < 0 else TradeDirection.SELL.value
        return DetectedActivity(
            wallet=wallet,
            direction=direction,
            fraction=fraction,
            source_signature=signature
        )
