from decimal import Decimal

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.db import IntegrityError, transaction

from core.ledger import append_entry, balance
from core.models import Account, LedgerEntry, LedgerEntryKind, Referral, SystemConfig
from core.services import apply_referral_bonus, register_referral


@pytest.mark.django_db
class TestReferralRegistration:
	def test_new_account_with_code_is_recorded(self, make_account):
		referrer = make_account("host@example.com")
		friend = make_account("friend@example.com", referral_code=referrer.referral_code.lower())

		referrer.refresh_from_db()
		friend.refresh_from_db()
		assert referrer.referral_count == 1
		assert friend.referred_by == referrer.referral_code
		assert Referral.objects.get(referred=friend).referrer_id == referrer.pk

	def test_unknown_code_is_ignored(self, make_account):
		friend = make_account("friend@example.com", referral_code="NOPE2345")
		assert not Referral.objects.exists()
		friend.refresh_from_db()
		assert friend.referred_by == ""

	def test_existing_account_is_not_re_referred(self, make_account):
		referrer = make_account("host@example.com")
		make_account("friend@example.com")
		make_account("friend@example.com", referral_code=referrer.referral_code)
		referrer.refresh_from_db()
		assert referrer.referral_count == 0

	def test_each_account_is_referred_once(self, make_account):
		first, second = make_account("a@example.com"), make_account("b@example.com")
		friend = make_account("friend@example.com", referral_code=first.referral_code)
		assert register_referral(second.referral_code, friend) is None
		second.refresh_from_db()
		assert second.referral_count == 0

	def test_self_referral_is_ignored(self, account):
		assert register_referral(account.referral_code, account) is None
		account.refresh_from_db()
		assert account.referral_count == 0


@pytest.mark.django_db
class TestReferralBonus:
	"""The bonus is credited once, when referral_count reaches the threshold."""

	def _refer(self, make_account, referrer, n, start=0):
		for i in range(start, start + n):
			make_account(f"friend{i}@example.com", referral_code=referrer.referral_code)

	def test_no_bonus_below_threshold(self, make_account):
		referrer = make_account("host@example.com")
		self._refer(make_account, referrer, 2)
		assert balance(referrer.pk) == Decimal("0.00")

	def test_bonus_at_threshold(self, make_account):
		referrer = make_account("host@example.com")
		self._refer(make_account, referrer, 3)

		entry = LedgerEntry.objects.get(account=referrer, kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT)
		assert entry.amount == Decimal("10.00")
		assert balance(referrer.pk) == Decimal("10.00")
		referrer.refresh_from_db()
		assert referrer.balance == Decimal("10.00")

	def test_bonus_is_granted_once(self, make_account):
		referrer = make_account("host@example.com")
		self._refer(make_account, referrer, 5)
		assert apply_referral_bonus(referrer.pk) is None
		assert LedgerEntry.objects.filter(
			account=referrer, kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT,
		).count() == 1

	def test_trigger_when_count_raised_directly(self, account):
		Account.objects.filter(pk=account.pk).update(referral_count=3)
		entry = apply_referral_bonus(account.pk)
		assert entry is not None
		assert apply_referral_bonus(account.pk) is None

	def test_duplicate_bonus_row_is_rejected_by_constraint(self, account):
		append_entry(account, kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT, amount=Decimal("10.00"), description="bonus")
		with pytest.raises(IntegrityError), transaction.atomic():
			append_entry(account, kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT, amount=Decimal("10.00"), description="again")

	def test_threshold_and_amount_from_system_config(self, make_account):
		SystemConfig.objects.create(key="referral_bonus_threshold", value="1")
		SystemConfig.objects.create(key="referral_bonus_amount", value="2.50")
		referrer = make_account("host@example.com")
		self._refer(make_account, referrer, 1)
		assert balance(referrer.pk) == Decimal("2.50")

	def test_bad_threshold_is_a_configuration_error(self, account):
		SystemConfig.objects.create(key="referral_bonus_threshold", value="0")
		Account.objects.filter(pk=account.pk).update(referral_count=3)
		with pytest.raises(ImproperlyConfigured):
			apply_referral_bonus(account.pk)
