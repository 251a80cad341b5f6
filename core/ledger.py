"""Ledger store and balance calculator.

The balance of an account is *derived*: the sum of its counted ledger entries.
Counted means
- credits (reward, referral bonus) in status completed
- withdrawal debits in status pending or completed (pending debits are already
  deducted so a racing withdrawal cannot spend the same money twice)
Failed and cancelled debits drop out, which is how a failed payout refunds the account.

Account.balance is a cache of that sum, rewritten by refresh_cached_balance inside the
same transaction as every ledger write.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError, DatabaseError
from django.db.models import Q, Sum

from .constants import ZERO, to_money
from .errors import RewardsError, AccountNotFound, ConstraintConflict, StorageFailure
from .models import (
	Account, ActivityLogEntry, LedgerEntry, LedgerEntryStatus, CREDIT_KINDS, DEBIT_KINDS,
)

logger = logging.getLogger(__name__)

COUNTED = (
	Q(kind__in=CREDIT_KINDS, status=LedgerEntryStatus.COMPLETED)
	| Q(kind__in=DEBIT_KINDS, status__in=[LedgerEntryStatus.PENDING, LedgerEntryStatus.COMPLETED])
)


@contextmanager
def atomic_unit(operation: str):
	"""
	One all-or-nothing unit of work. Django rolls the block back on any exception;
	storage errors are then re-raised as engine outcomes, engine errors pass through.
	"""
	try:
		with transaction.atomic():
			yield
	except RewardsError:
		raise
	except IntegrityError as exc:
		logger.warning("%s rolled back: uniqueness conflict (%s)", operation, exc)
		raise ConstraintConflict(f"{operation}: concurrent write conflict") from exc
	except DatabaseError as exc:
		logger.exception("%s rolled back: storage failure", operation)
		raise StorageFailure(f"{operation}: storage failure, safe to retry") from exc


def lock_account(account_id) -> Account:
	"""
	Take the per-account row lock for the rest of the current transaction.

	Must be called inside atomic_unit. On PostgreSQL it is SELECT ... FOR UPDATE; on SQLite
	the row lock is a no-op and the BEGIN IMMEDIATE database write lock serializes writers.
	"""
	try:
		return Account.objects.select_for_update().get(pk=account_id)
	except (Account.DoesNotExist, ValidationError, ValueError) as exc:
		raise AccountNotFound(f"account {account_id} not found") from exc


def counted_entries(account_id):
	return LedgerEntry.objects.filter(account_id=account_id).filter(COUNTED)


def balance(account_id) -> Decimal:
	"""
	Derived balance: sum of counted entries. Reads only committed + own-transaction rows.
	"""
	total = counted_entries(account_id).aggregate(total=Sum("amount"))["total"]
	return to_money(total if total is not None else ZERO)


def append_entry(
	account: Account,
	*,
	kind: str,
	amount: Decimal,
	description: str,
	reference: str = "",
	status: str = LedgerEntryStatus.COMPLETED,
	withdrawal=None,
) -> LedgerEntry:
	"""
	Insert one ledger entry. Only fails on a constraint violation or a storage fault.
	"""
	return LedgerEntry.objects.create(
		account=account,
		kind=kind,
		amount=to_money(amount),
		description=description,
		reference=str(reference),
		status=status,
		withdrawal=withdrawal,
	)


def refresh_cached_balance(account: Account) -> Decimal:
	"""
	Rewrite Account.balance from the ledger. Call after every ledger write, same transaction.
	"""
	derived = balance(account.pk)
	Account.objects.filter(pk=account.pk).update(balance=derived)
	account.balance = derived
	return derived


def record_activity(
	account: Account | None,
	event_kind: str,
	description: str,
	*,
	origin: str = "",
	client_signature: str = "",
	payload: dict | None = None,
) -> ActivityLogEntry:
	return ActivityLogEntry.objects.create(
		account=account,
		event_kind=event_kind,
		description=description,
		origin=origin or "",
		client_signature=client_signature or "",
		payload=payload or {},
	)


@dataclass
class BalanceMismatch:
	account_id: str
	contact_key: str
	cached: Decimal
	derived: Decimal


def reconcile_balances(*, fix: bool = False) -> list[BalanceMismatch]:
	"""
	Compare every cached Account.balance with its derived ledger sum.

	With fix=True each mismatching account is locked and its cache rewritten.
	"""
	mismatches = []
	for account in Account.objects.order_by("created_at"):
		derived = balance(account.pk)
		if to_money(account.balance) == derived:
			continue
		mismatches.append(BalanceMismatch(str(account.pk), account.contact_key, to_money(account.balance), derived))
		if fix:
			with atomic_unit("reconcile_balance"):
				locked = lock_account(account.pk)
				fixed = refresh_cached_balance(locked)
			logger.warning("Repaired cached balance for %s: %s -> %s", account.pk, account.balance, fixed)
	return mismatches
