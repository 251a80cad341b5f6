"""Business orchestration for the reward engine.

This module coordinates: survey submission → reward credit, withdrawal requests,
operator settlement, and referral registration → one-time referral bonus.

Every operation that touches the ledger runs as one atomic_unit and starts by taking
the per-account row lock, so a single account's critical sections are serialized while
different accounts never wait on each other. Two uniqueness constraints double as locks
("insert-as-lock"): CompletionRecord(account, survey) for rewards and the partial unique
index on referral-bonus entries. The first committer of the row wins; the loser gets an
IntegrityError inside its savepoint and the whole unit rolls back.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone

from . import config
from .constants import to_money
from .errors import (
	AlreadyCompleted, SurveyNotFound, SurveyInactive, BelowMinimum, AboveMaximum,
	MissingDestination, InsufficientBalance, WithdrawalNotFound, InvalidTransition,
)
from .ledger import atomic_unit, lock_account, balance, append_entry, refresh_cached_balance, record_activity
from .models import (
	Account, Survey, Answer, CompletionRecord, LedgerEntry, LedgerEntryKind, LedgerEntryStatus,
	WithdrawalRequest, WithdrawalStatus, Referral,
)

logger = logging.getLogger(__name__)


# --- Survey rewards ----------------------------------------------------------

@dataclass
class SubmissionResult:
	account_id: str
	survey_key: str
	completion_id: str
	answers_saved: int
	reward: Decimal
	balance: Decimal
	ignored_keys: list[str] = field(default_factory=list)


def normalize_answers(answers) -> dict:
	"""
	Collapse submitted answers into {question_key: text | [options]}.

	Accepts a mapping or an iterable of (key, value) pairs; when a key repeats, the last
	value wins. Lists become an ordered set of option labels, other scalars become text,
	None means "not answered" and is dropped.
	"""
	if answers is None:
		return {}
	pairs = answers.items() if isinstance(answers, Mapping) else answers
	normalized = {}
	for key, value in pairs:
		key = str(key)
		if value is None:
			normalized.pop(key, None)
			continue
		if isinstance(value, (list, tuple)):
			value = list(dict.fromkeys(str(v) for v in value))
		else:
			value = str(value)
		normalized.pop(key, None)  # re-insert so ordering follows the last write
		normalized[key] = value
	return normalized


def get_survey(survey_ref) -> Survey:
	"""
	Active survey by primary key (int or ASCII digit string) or by survey key.
	"""
	if isinstance(survey_ref, int) or re.fullmatch(r"[0-9]+", str(survey_ref)):
		lookup = {"pk": int(survey_ref)}
	else:
		lookup = {"key": str(survey_ref)}
	survey = Survey.objects.filter(**lookup).first()
	if survey is None:
		raise SurveyNotFound(f"survey {survey_ref} not found")
	if not survey.is_active:
		raise SurveyInactive(f"survey {survey.key} is not active")
	return survey


def submit_survey(account_id, survey_ref, answers, *, origin: str = "", client_signature: str = "") -> SubmissionResult:
	"""
	Persist a completed survey and credit its reward exactly once per (account, survey).

	Order inside the unit: lock account → insert CompletionRecord (fails with
	AlreadyCompleted on a duplicate) → answers → reward credit → cache → audit.
	Answers for unknown question keys are ignored.
	"""
	normalized = normalize_answers(answers)

	with atomic_unit("submit_survey"):
		survey = get_survey(survey_ref)
		account = lock_account(account_id)

		try:
			with transaction.atomic():
				completion = CompletionRecord.objects.create(
					account=account, survey=survey, reward_amount=survey.reward_amount,
				)
		except IntegrityError as exc:
			logger.info("Rejected duplicate completion of %s by %s", survey.key, account.pk)
			raise AlreadyCompleted(f"survey {survey.key} already completed") from exc

		questions = {q.key: q for q in survey.questions.all()}
		rows, saved, ignored = [], [], []
		for key, value in normalized.items():
			question = questions.get(key)
			if question is None:
				ignored.append(key)
				continue
			is_options = isinstance(value, list)
			rows.append(Answer(
				account=account,
				survey=survey,
				question=question,
				answer_text=None if is_options else value,
				answer_options=value if is_options else None,
			))
			saved.append({"question_key": key, "answer": value})
		Answer.objects.bulk_create(rows)

		reward = to_money(survey.reward_amount)
		append_entry(
			account,
			kind=LedgerEntryKind.REWARD_CREDIT,
			amount=reward,
			description=f"Reward for completing survey: {survey.key}",
			reference=survey.key,
		)
		new_balance = refresh_cached_balance(account)

		record_activity(
			account,
			"survey_completed",
			f"Completed survey: {survey.key}",
			origin=origin,
			client_signature=client_signature,
			payload={
				"survey_id": survey.pk,
				"survey_key": survey.key,
				"reward": reward,
				"responses": saved,
				"ignored_keys": ignored,
			},
		)

	logger.info("Credited %s to %s for survey %s (%d answers)", reward, account.pk, survey.key, len(rows))
	return SubmissionResult(
		account_id=str(account.pk),
		survey_key=survey.key,
		completion_id=str(completion.pk),
		answers_saved=len(rows),
		reward=reward,
		balance=new_balance,
		ignored_keys=ignored,
	)


# --- Withdrawals -------------------------------------------------------------

def request_withdrawal(account_id, amount, destination, *, origin: str = "", client_signature: str = "") -> WithdrawalRequest:
	"""
	Reserve `amount` for payout: pending WithdrawalRequest + paired pending debit.

	The balance is recomputed from the ledger under the account lock, so it already
	includes the pending debits of every withdrawal that committed before us.
	"""
	amount = to_money(amount)
	destination = (destination or "").strip()

	with atomic_unit("request_withdrawal"):
		floor, ceiling = config.min_withdrawal(), config.max_withdrawal()
		if amount <= 0 or amount < floor:
			raise BelowMinimum(f"minimum withdrawal is {floor}")
		if amount > ceiling:
			raise AboveMaximum(f"maximum withdrawal is {ceiling}")
		if not destination:
			raise MissingDestination("payout destination is required")

		account = lock_account(account_id)
		available = balance(account.pk)
		if available < amount:
			logger.info("Rejected withdrawal of %s for %s: balance %s", amount, account.pk, available)
			raise InsufficientBalance(f"balance {available} is below requested {amount}")

		withdrawal = WithdrawalRequest.objects.create(account=account, amount=amount, destination=destination)
		append_entry(
			account,
			kind=LedgerEntryKind.WITHDRAWAL_DEBIT_PENDING,
			amount=-amount,
			description=f"Withdrawal request to {destination}",
			reference=str(withdrawal.pk),
			status=LedgerEntryStatus.PENDING,
			withdrawal=withdrawal,
		)
		refresh_cached_balance(account)

		record_activity(
			account,
			"withdrawal_requested",
			f"Requested withdrawal of {amount}",
			origin=origin,
			client_signature=client_signature,
			payload={"withdrawal_id": withdrawal.pk, "amount": amount, "destination": destination},
		)

	logger.info("Withdrawal %s of %s requested by %s", withdrawal.pk, amount, account.pk)
	return withdrawal


# Allowed operator moves: current status -> targets
WITHDRAWAL_TRANSITIONS = {
	WithdrawalStatus.PENDING: {WithdrawalStatus.PROCESSING, WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED},
	WithdrawalStatus.PROCESSING: {WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED},
}


def _move_withdrawal(
	withdrawal_id,
	target: str,
	*,
	event_kind: str,
	entry_status: str | None = None,
	entry_kind: str | None = None,
	payout_reference: str = "",
	notes: str = "",
	allowed_from=None,
) -> WithdrawalRequest:
	with atomic_unit(event_kind):
		try:
			account_id = WithdrawalRequest.objects.values_list("account_id", flat=True).get(pk=withdrawal_id)
		except (WithdrawalRequest.DoesNotExist, ValidationError, ValueError) as exc:
			raise WithdrawalNotFound(f"withdrawal {withdrawal_id} not found") from exc

		# Same lock order as request_withdrawal: account first, then the request row
		account = lock_account(account_id)
		withdrawal = WithdrawalRequest.objects.select_for_update().get(pk=withdrawal_id)
		entry = LedgerEntry.objects.select_for_update().get(withdrawal=withdrawal)

		if withdrawal.status == target and (entry_status is None or entry.status == entry_status):
			# Operator replayed the same instruction
			return withdrawal

		sources = allowed_from if allowed_from is not None else {
			src for src, targets in WITHDRAWAL_TRANSITIONS.items() if target in targets
		}
		if withdrawal.status not in sources:
			raise InvalidTransition(f"withdrawal {withdrawal.pk} is {withdrawal.status}, cannot become {target}")

		previous = withdrawal.status
		now = timezone.now()
		withdrawal.status = target
		update_fields = ["status"]
		if target in (WithdrawalStatus.COMPLETED, WithdrawalStatus.FAILED):
			withdrawal.processed_at = now
			update_fields.append("processed_at")
		if payout_reference:
			withdrawal.payout_reference = payout_reference
			update_fields.append("payout_reference")
		if notes:
			withdrawal.admin_notes = notes
			update_fields.append("admin_notes")
		withdrawal.save(update_fields=update_fields)

		if entry_status is not None:
			entry.status = entry_status
			entry.processed_at = now
			entry_fields = ["status", "processed_at"]
			if entry_kind is not None:
				entry.kind = entry_kind
				entry_fields.append("kind")
			entry.save(update_fields=entry_fields)
		new_balance = refresh_cached_balance(account)

		record_activity(
			account,
			event_kind,
			f"Withdrawal {withdrawal.pk}: {previous} -> {target}",
			payload={
				"withdrawal_id": withdrawal.pk,
				"amount": withdrawal.amount,
				"from": previous,
				"to": target,
				"payout_reference": withdrawal.payout_reference,
				"balance": new_balance,
			},
		)

	logger.info("Withdrawal %s moved %s -> %s", withdrawal.pk, previous, target)
	return withdrawal


def mark_withdrawal_processing(withdrawal_id, *, notes: str = "") -> WithdrawalRequest:
	return _move_withdrawal(withdrawal_id, WithdrawalStatus.PROCESSING, event_kind="withdrawal_processing", notes=notes)


def settle_withdrawal(withdrawal_id, outcome: str, *, payout_reference: str = "", notes: str = "") -> WithdrawalRequest:
	"""
	Operator settlement. completed: debit becomes settled/completed (still counted).
	failed: debit becomes failed and drops out of the balance, refunding the account.
	"""
	if outcome == WithdrawalStatus.COMPLETED:
		return _move_withdrawal(
			withdrawal_id,
			WithdrawalStatus.COMPLETED,
			event_kind="withdrawal_completed",
			entry_status=LedgerEntryStatus.COMPLETED,
			entry_kind=LedgerEntryKind.WITHDRAWAL_DEBIT_SETTLED,
			payout_reference=payout_reference,
			notes=notes,
		)
	if outcome == WithdrawalStatus.FAILED:
		return _move_withdrawal(
			withdrawal_id,
			WithdrawalStatus.FAILED,
			event_kind="withdrawal_failed",
			entry_status=LedgerEntryStatus.FAILED,
			payout_reference=payout_reference,
			notes=notes,
		)
	raise InvalidTransition(f"unknown settlement outcome {outcome!r}")


def cancel_withdrawal(withdrawal_id, *, notes: str = "") -> WithdrawalRequest:
	"""
	Withdraw a request before the operator picked it up; the debit is cancelled.
	"""
	return _move_withdrawal(
		withdrawal_id,
		WithdrawalStatus.FAILED,
		event_kind="withdrawal_cancelled",
		entry_status=LedgerEntryStatus.CANCELLED,
		notes=notes,
		allowed_from={WithdrawalStatus.PENDING},
	)


# --- Referrals ---------------------------------------------------------------

def register_referral(referral_code: str, referred: Account, *, origin: str = "") -> Referral | None:
	"""
	Record that `referred` joined with `referral_code`, bump the referrer's count and
	run the bonus trigger. Unknown codes, self-referrals and repeats are ignored.
	"""
	code = (referral_code or "").strip().upper()
	if not code:
		return None

	referral = None
	with atomic_unit("register_referral"):
		referrer = Account.objects.select_for_update().filter(referral_code=code).first()
		if referrer is not None and referrer.pk != referred.pk:
			try:
				with transaction.atomic():
					referral = Referral.objects.create(referrer=referrer, referred=referred, referral_code=code)
			except IntegrityError:
				logger.info("Account %s was already referred; ignoring code %s", referred.pk, code)
			else:
				Account.objects.filter(pk=referrer.pk).update(referral_count=F("referral_count") + 1)
				Account.objects.filter(pk=referred.pk, referred_by="").update(referred_by=code)
				record_activity(
					referrer,
					"referral_registered",
					f"Referred account {referred.pk}",
					origin=origin,
					payload={"referred_id": referred.pk, "referral_code": code},
				)

	if referral is None:
		return None
	apply_referral_bonus(referral.referrer_id)
	return referral


def apply_referral_bonus(account_id) -> LedgerEntry | None:
	"""
	Referral bonus trigger: once referral_count reaches the threshold, credit the bonus.
	Returns the new entry, or None when not eligible or already granted.
	"""
	entry = None
	with atomic_unit("referral_bonus"):
		threshold, amount = config.referral_bonus_threshold(), config.referral_bonus_amount()
		account = lock_account(account_id)
		already_granted = LedgerEntry.objects.filter(
			account=account, kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT,
		).exists()
		if account.referral_count >= threshold and not already_granted:
			try:
				with transaction.atomic():
					entry = append_entry(
						account,
						kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT,
						amount=amount,
						description=f"Bonus for reaching {threshold} referrals",
						reference=f"referral_bonus_{threshold}",
					)
			except IntegrityError:
				logger.info("Referral bonus for %s was granted concurrently", account.pk)
			else:
				refresh_cached_balance(account)
				record_activity(
					account,
					"referral_bonus",
					f"Referral bonus of {amount}",
					payload={"threshold": threshold, "referral_count": account.referral_count, "amount": amount},
				)

	if entry is not None:
		logger.info("Granted referral bonus %s to %s", entry.amount, account_id)
	return entry
