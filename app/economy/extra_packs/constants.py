from __future__ import annotations

from decimal import Decimal

EXPIRY_MONTHS = 6
WARNING_DAYS = 30
REFUND_WINDOW_DAYS = 14
IDEMPOTENCY_KEY_MAX_LENGTH = 128
CONSUMPTION_SOURCE_EXTRA = "extra"
EXTRA_LEG_KEY_SUFFIX = ":extra"
# Money columns are NUMERIC(10, 2).
AMOUNT_DECIMAL_PLACES = 2
AMOUNT_UPPER_BOUND = Decimal("100000000")
