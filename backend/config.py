"""
Configuration and shared helpers
"""

import os
import uuid
import hashlib
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'bizflow')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# Webhook fan-out
WEBHOOK_TIMEOUT_SECONDS = float(os.environ.get('WEBHOOK_TIMEOUT_SECONDS', '10'))
WEBHOOK_MAX_CONCURRENCY = int(os.environ.get('WEBHOOK_MAX_CONCURRENCY', '8'))

# CRM scoring
CONTACT_INITIAL_SCORE = int(os.environ.get('CONTACT_INITIAL_SCORE', '10'))
CONTACT_PURCHASE_INCREMENT = int(os.environ.get('CONTACT_PURCHASE_INCREMENT', '10'))
VIP_SCORE_THRESHOLD = int(os.environ.get('VIP_SCORE_THRESHOLD', '50'))

# Sessions
SESSION_TTL_DAYS = int(os.environ.get('SESSION_TTL_DAYS', '7'))

# Stripe (payment confirmation)
STRIPE_WEBHOOK_SECRET = os.environ.get('STRIPE_WEBHOOK_SECRET', '')


# ==================== HELPERS ====================

def hash_password(password: str) -> str:
    """SHA256 password hash"""
    return hashlib.sha256(password.encode()).hexdigest()

def generate_token() -> str:
    """Secure session token"""
    return secrets.token_urlsafe(32)

def new_id() -> str:
    return str(uuid.uuid4())

def now_iso() -> str:
    """Current UTC time as ISO-8601"""
    return datetime.now(timezone.utc).isoformat()


CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Amount as a Decimal rounded to the cent. Floats go through str()."""
    if isinstance(value, Decimal):
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def money_float(value: Decimal) -> float:
    """Stored / serialized form of an amount (JSON has no decimal type)"""
    return float(to_money(value))


@asynccontextmanager
async def start_transaction(database=None):
    """
    Open a client session and a multi-document transaction on it.

    Usage:
        async with start_transaction(db) as session:
            await db.products.update_one(..., session=session)

    Leaving the block normally commits; an exception aborts every write
    made with the session and propagates.
    """
    database = database if database is not None else db
    async with await database.client.start_session() as session:
        async with session.start_transaction():
            yield session


SENSITIVE_KEYS = ("password", "token", "secret", "api_key", "apikey", "credential", "private_key")


def sanitize(data):
    """Redact sensitive values (password, token, secret...) before logging"""
    if isinstance(data, dict):
        cleaned = {}
        for key, value in data.items():
            if any(s in str(key).lower() for s in SENSITIVE_KEYS):
                cleaned[key] = "[REDACTED]"
            else:
                cleaned[key] = sanitize(value)
        return cleaned
    if isinstance(data, list):
        return [sanitize(v) for v in data]
    return data
