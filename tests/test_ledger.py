from decimal import Decimal

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.db import DatabaseError, IntegrityError

from core.errors import AccountNotFound, ConstraintConflict, StorageFailure, InsufficientBalance
from core.ledger import (
	append_entry, atomic_unit, balance, lock_account, reconcile_balances, refresh_cached_balance,
)
from core.models import Account, LedgerEntryKind, LedgerEntryStatus


@pytest.mark.django_db
class TestBalanceCalculator:
	"""Balance is the sum of counted entries only."""

	def test_new_account_has_zero_balance(self, account):
		assert balance(account.pk) == Decimal("0.00")

	def test_completed_credits_are_counted(self, account, credit):
		credit(account, "5.00")
		credit(account, "1.00")
		assert balance(account.pk) == Decimal("6.00")

	def test_pending_and_completed_debits_are_counted(self, account, credit):
		credit(account, "20.00")
		append_entry(
			account, kind=LedgerEntryKind.WITHDRAWAL_DEBIT_PENDING, amount=Decimal("-5.00"),
			description="pending", status=LedgerEntryStatus.PENDING,
		)
		append_entry(
			account, kind=LedgerEntryKind.WITHDRAWAL_DEBIT_SETTLED, amount=Decimal("-3.00"),
			description="settled", status=LedgerEntryStatus.COMPLETED,
		)
		assert balance(account.pk) == Decimal("12.00")

	def test_failed_and_cancelled_debits_are_excluded(self, account, credit):
		credit(account, "20.00")
		for status in (LedgerEntryStatus.FAILED, LedgerEntryStatus.CANCELLED):
			append_entry(
				account, kind=LedgerEntryKind.WITHDRAWAL_DEBIT_PENDING, amount=Decimal("-5.00"),
				description=status, status=status,
			)
		assert balance(account.pk) == Decimal("20.00")

	def test_pending_credit_is_not_counted(self, account):
		append_entry(
			account, kind=LedgerEntryKind.REWARD_CREDIT, amount=Decimal("5.00"),
			description="not yet", status=LedgerEntryStatus.PENDING,
		)
		assert balance(account.pk) == Decimal("0.00")

	def test_balance_is_per_account(self, make_account, credit):
		alice, bob = make_account("alice@example.com"), make_account("bob@example.com")
		credit(alice, "7.00")
		assert balance(bob.pk) == Decimal("0.00")

	def test_sign_constraint_rejects_negative_credit(self, account):
		with pytest.raises(IntegrityError):
			append_entry(account, kind=LedgerEntryKind.REWARD_CREDIT, amount=Decimal("-1.00"), description="bad")


@pytest.mark.django_db
class TestCachedBalance:
	def test_refresh_writes_derived_sum(self, account, credit):
		credit(account, "3.50")
		account.refresh_from_db()
		assert account.balance == Decimal("3.50")

	def test_reconcile_reports_and_repairs_drift(self, account, credit):
		credit(account, "4.00")
		Account.objects.filter(pk=account.pk).update(balance=Decimal("99.00"))

		mismatches = reconcile_balances()
		assert [(m.account_id, m.cached, m.derived) for m in mismatches] == [
			(str(account.pk), Decimal("99.00"), Decimal("4.00")),
		]

		reconcile_balances(fix=True)
		account.refresh_from_db()
		assert account.balance == Decimal("4.00")
		assert reconcile_balances() == []

	def test_reconcile_command_fails_on_mismatch(self, account, credit):
		credit(account, "4.00")
		Account.objects.filter(pk=account.pk).update(balance=Decimal("1.00"))
		with pytest.raises(CommandError):
			call_command("reconcile_balances", "--fail-on-mismatch")
		call_command("reconcile_balances", "--fix")
		account.refresh_from_db()
		assert account.balance == Decimal("4.00")


@pytest.mark.django_db
class TestAtomicUnit:
	"""Storage errors become engine outcomes and the unit rolls back."""

	def test_integrity_error_becomes_constraint_conflict(self, account, credit):
		with pytest.raises(ConstraintConflict):
			with atomic_unit("test"):
				credit(account, "2.00")
				raise IntegrityError("duplicate key")
		assert balance(account.pk) == Decimal("0.00")

	def test_database_error_becomes_storage_failure(self, account, credit):
		with pytest.raises(StorageFailure):
			with atomic_unit("test"):
				credit(account, "2.00")
				raise DatabaseError("connection lost")
		assert balance(account.pk) == Decimal("0.00")

	def test_engine_errors_pass_through(self, account, credit):
		with pytest.raises(InsufficientBalance):
			with atomic_unit("test"):
				credit(account, "2.00")
				raise InsufficientBalance("nope")
		assert balance(account.pk) == Decimal("0.00")

	def test_lock_unknown_account(self):
		with pytest.raises(AccountNotFound):
			with atomic_unit("test"):
				lock_account("00000000-0000-0000-0000-000000000000")

	def test_lock_malformed_account_id(self):
		with pytest.raises(AccountNotFound):
			with atomic_unit("test"):
				lock_account("not-a-uuid")
