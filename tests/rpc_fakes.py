"""In-memory Solana RPC stand-ins shared by the detector and monitor tests."""

WALLET = "TraderWalletAAA"


class FakeRpcClient:
    """Serves a fixed signature history (newest first) and transactions."""

    def __init__(self, signatures=None, transactions=None):
        self.signatures = signatures or []
        self.transactions = transactions or {}
        self.calls = []

    def get_signatures(self, address, limit, until=None, before=None):
        self.calls.append({"address": address, "limit": limit, "until": until, "before": before})
        entries = self.signatures
        if before is not None:
            names = [entry["signature"] for entry in entries]
            entries = entries[names.index(before) + 1:]
        result = []
        for entry in entries:
            if entry["signature"] == until:
                break
            result.append(entry)
        return result[:limit]

    def get_transaction(self, signature):
        return self.transactions.get(signature)


def transaction(pre, post, index=1, fee=5000, wallet=WALLET):
    keys = ["FeePayer111"] * 3
    keys[index] = wallet
    pre_balances = [10_000_000] * 3
    post_balances = [10_000_000] * 3
    pre_balances[index] = pre
    post_balances[index] = post
    return {
        "meta": {"fee": fee, "preBalances": pre_balances, "postBalances": post_balances},
        "transaction": {"message": {"accountKeys": keys}},
    }
