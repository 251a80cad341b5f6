"""Engine parameters: settings defaults, overridable per deployment via SystemConfig rows."""

from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .constants import (
	CONFIG_MIN_WITHDRAWAL, CONFIG_MAX_WITHDRAWAL, CONFIG_BONUS_THRESHOLD, CONFIG_BONUS_AMOUNT, to_money,
)
from .models import SystemConfig


def _override(key: str):
	row = SystemConfig.objects.filter(key=key).only("value").first()
	return row.value.strip() if row else None


def _money_setting(key: str, setting_name: str) -> Decimal:
	raw = _override(key)
	if raw is None:
		raw = getattr(settings, setting_name)
	try:
		return to_money(raw)
	except (TypeError, ValueError) as exc:
		raise ImproperlyConfigured(f"{key} must be a decimal amount, got {raw!r}") from exc


def min_withdrawal() -> Decimal:
	return _money_setting(CONFIG_MIN_WITHDRAWAL, "MIN_WITHDRAWAL_AMOUNT")


def max_withdrawal() -> Decimal:
	return _money_setting(CONFIG_MAX_WITHDRAWAL, "MAX_WITHDRAWAL_AMOUNT")


def referral_bonus_amount() -> Decimal:
	return _money_setting(CONFIG_BONUS_AMOUNT, "REFERRAL_BONUS_AMOUNT")


def referral_bonus_threshold() -> int:
	raw = _override(CONFIG_BONUS_THRESHOLD)
	if raw is None:
		raw = getattr(settings, "REFERRAL_BONUS_THRESHOLD")
	try:
		threshold = int(raw)
	except (TypeError, ValueError) as exc:
		raise ImproperlyConfigured(f"{CONFIG_BONUS_THRESHOLD} must be an integer, got {raw!r}") from exc
	if threshold < 1:
		raise ImproperlyConfigured(f"{CONFIG_BONUS_THRESHOLD} must be >= 1, got {threshold}")
	return threshold
