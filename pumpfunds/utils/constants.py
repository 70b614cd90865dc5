"""
Application constants to replace magic numbers throughout the codebase.
"""
from datetime import timedelta
from decimal import Decimal

# SIP periods. Monthly is a fixed 30-day approximation, not calendar months.
SIP_PERIODS = {
    'daily': timedelta(hours=24),
    'weekly': timedelta(days=7),
    'monthly': timedelta(days=30),
}

# Ledger retention
DEFAULT_RETENTION_DAYS = 90

# Amounts are tracked to lamport precision (9 decimals)
AMOUNT_QUANTUM = Decimal('0.000000001')

# Mock transaction signatures mimic base58 Solana signatures
SIGNATURE_LENGTH = 88
SIGNATURE_ALPHABET = 'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789'

# Mock trader activity
DEFAULT_ACTIVITY_PROBABILITY = 0.1
DEFAULT_MAX_TRADE_FRACTION = Decimal('0.10')

# Solana
DEFAULT_SIGNATURE_FETCH_LIMIT = 25
DEFAULT_SIGNATURE_MAX_PAGES = 40

# API timeouts
API_TIMEOUT_SHORT = 5

# Database query limits
DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 500

# Persisted setup record key
DATABASE_SETUP_KEY = 'database'
