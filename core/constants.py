"""Money helpers and ledger vocabulary shared across the engine.


- MONEY_PLACES controls the ledger granularity (cents).
- to_money normalises user/DB input to a 2-decimal Decimal.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(amount: str | int | Decimal) -> Decimal:
	"""
	Convert a human amount (e.g. "5", "12.345", Decimal("1.1")) to a 2-decimal Decimal.

	Floats are rejected; JSON bodies must carry amounts as strings or ints.
	"""
	if isinstance(amount, float):
		raise TypeError("float amounts are not accepted; pass str or Decimal")
	try:
		value = Decimal(str(amount))
	except InvalidOperation as exc:
		raise ValueError(f"not a decimal amount: {amount!r}") from exc
	if not value.is_finite():
		raise ValueError(f"not a finite amount: {amount!r}")
	return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
	return f"{to_money(amount):.2f}"


# Keys of SystemConfig rows that override settings at runtime.
CONFIG_MIN_WITHDRAWAL = "min_withdrawal_amount"
CONFIG_MAX_WITHDRAWAL = "max_withdrawal_amount"
CONFIG_BONUS_THRESHOLD = "referral_bonus_threshold"
CONFIG_BONUS_AMOUNT = "referral_bonus_amount"
