"""Database models for the survey reward engine.


Tables:
- Account: rewarded identity keyed by a unique contact key (balance column is a cache)
- Survey / SurveyQuestion: read-only catalog as far as the engine is concerned
- Answer: one row per (account, survey, question)
- CompletionRecord: one row per (account, survey); its insert is the reward lock
- LedgerEntry: append-only signed amounts; the only source of truth for balance
- WithdrawalRequest: payout request paired 1:1 with a pending debit entry
- Referral: who invited whom (each account can be referred once)
- ActivityLogEntry: write-only audit trail
- SystemConfig: runtime overrides for withdrawal limits and referral bonus
"""

import uuid
from decimal import Decimal
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import Q


class Account(models.Model):
	"""
	A rewarded end user. Created only by the identity resolver, never deleted by the engine.

	balance is a cache of the derived ledger sum, rewritten inside every ledger-touching
	transaction; reconcile_balances checks it against the ledger.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	contact_key = models.CharField(max_length=255, unique=True)  # email or synthesized temp key
	referral_code = models.CharField(max_length=20, unique=True)
	referred_by = models.CharField(max_length=20, blank=True, default="")  # inviter's referral_code
	referral_count = models.PositiveIntegerField(default=0)
	balance = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
	last_origin = models.CharField(max_length=64, blank=True, default="")
	client_signature = models.TextField(blank=True, default="")
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	def __str__(self):
		return self.contact_key


class Survey(models.Model):
	"""
	A rewardable survey. reward_amount is credited once per account on completion.
	"""
	key = models.CharField(max_length=50, unique=True)
	title = models.CharField(max_length=200)
	description = models.TextField(blank=True, default="")
	reward_amount = models.DecimalField(max_digits=10, decimal_places=2)
	is_active = models.BooleanField(default=True)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		constraints = [
			models.CheckConstraint(condition=Q(reward_amount__gte=0), name="survey_reward_non_negative"),
		]

	def __str__(self):
		return self.key


class QuestionKind(models.TextChoices):
	SINGLE_CHOICE = "single_choice", "Single choice"
	MULTI_CHOICE = "multi_choice", "Multiple choice"
	FREE_TEXT = "free_text", "Free text"


class SurveyQuestion(models.Model):
	id = models.BigAutoField(primary_key=True)
	survey = models.ForeignKey(Survey, on_delete=models.CASCADE, related_name="questions")
	key = models.CharField(max_length=50)
	text = models.TextField()
	kind = models.CharField(max_length=20, choices=QuestionKind.choices)
	options = models.JSONField(null=True, blank=True)  # list of choice labels, None for free text
	is_required = models.BooleanField(default=True)
	order_index = models.IntegerField(default=0)

	class Meta:
		ordering = ["order_index", "id"]
		constraints = [
			models.UniqueConstraint(fields=["survey", "key"], name="unique_question_key_per_survey"),
		]


class Answer(models.Model):
	"""
	Exactly one answer per (account, survey, question); holds text XOR selected options.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	account = models.ForeignKey(Account, on_delete=models.CASCADE, related_name="answers")
	survey = models.ForeignKey(Survey, on_delete=models.CASCADE)
	question = models.ForeignKey(SurveyQuestion, on_delete=models.CASCADE)
	answer_text = models.TextField(null=True, blank=True)
	answer_options = models.JSONField(null=True, blank=True)
	answered_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		constraints = [
			models.UniqueConstraint(fields=["account", "survey", "question"], name="unique_answer_per_question"),
			models.CheckConstraint(
				condition=(
					Q(answer_text__isnull=False, answer_options__isnull=True)
					| Q(answer_text__isnull=True, answer_options__isnull=False)
				),
				name="answer_text_xor_options",
			),
		]


class CompletionRecord(models.Model):
	"""
	Proof that an account was rewarded for a survey.

	Uniqueness: (account, survey). The engine inserts this row *before* any credit,
	so the losing side of a concurrent double submission fails here and rolls back.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="completions")
	survey = models.ForeignKey(Survey, on_delete=models.PROTECT, related_name="completions")
	reward_amount = models.DecimalField(max_digits=10, decimal_places=2)
	completed_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		constraints = [
			models.UniqueConstraint(fields=["account", "survey"], name="unique_completion_per_account_survey"),
		]


class LedgerEntryKind(models.TextChoices):
	REWARD_CREDIT = "reward_credit", "Survey reward"
	REFERRAL_BONUS_CREDIT = "referral_bonus_credit", "Referral bonus"
	WITHDRAWAL_DEBIT_PENDING = "withdrawal_debit_pending", "Withdrawal (pending)"
	WITHDRAWAL_DEBIT_SETTLED = "withdrawal_debit_settled", "Withdrawal (settled)"


class LedgerEntryStatus(models.TextChoices):
	PENDING = "pending", "Pending"
	COMPLETED = "completed", "Completed"
	FAILED = "failed", "Failed"
	CANCELLED = "cancelled", "Cancelled"


CREDIT_KINDS = (LedgerEntryKind.REWARD_CREDIT, LedgerEntryKind.REFERRAL_BONUS_CREDIT)
DEBIT_KINDS = (LedgerEntryKind.WITHDRAWAL_DEBIT_PENDING, LedgerEntryKind.WITHDRAWAL_DEBIT_SETTLED)


class WithdrawalStatus(models.TextChoices):
	PENDING = "pending", "Pending"
	PROCESSING = "processing", "Processing"
	COMPLETED = "completed", "Completed"
	FAILED = "failed", "Failed"


class WithdrawalRequest(models.Model):
	"""
	A payout request. Settlement (processing/completed/failed) is done by the payout operator.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="withdrawals")
	amount = models.DecimalField(max_digits=10, decimal_places=2)
	destination = models.CharField(max_length=255)  # e.g. PayPal email
	status = models.CharField(max_length=16, choices=WithdrawalStatus.choices, default=WithdrawalStatus.PENDING)
	payout_reference = models.CharField(max_length=100, blank=True, default="")
	admin_notes = models.TextField(blank=True, default="")
	requested_at = models.DateTimeField(auto_now_add=True)
	processed_at = models.DateTimeField(null=True, blank=True)

	class Meta:
		constraints = [
			models.CheckConstraint(condition=Q(amount__gt=0), name="withdrawal_amount_positive"),
		]
		indexes = [
			models.Index(fields=["status"], name="withdrawal_status_idx"),
		]


class LedgerEntry(models.Model):
	"""
	Immutable signed amount. Credits are >= 0, withdrawal debits are < 0.

	Only status (and pending -> settled kind) may change, and only for withdrawal debits.
	At most one referral bonus per account is enforced by a partial unique constraint.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	account = models.ForeignKey(Account, on_delete=models.PROTECT, related_name="ledger_entries")
	kind = models.CharField(max_length=32, choices=LedgerEntryKind.choices)
	amount = models.DecimalField(max_digits=10, decimal_places=2)
	description = models.TextField(blank=True, default="")
	reference = models.CharField(max_length=100, blank=True, default="")  # survey key, withdrawal id, ...
	withdrawal = models.OneToOneField(
		WithdrawalRequest, null=True, blank=True, on_delete=models.PROTECT, related_name="ledger_entry"
	)
	status = models.CharField(max_length=16, choices=LedgerEntryStatus.choices, default=LedgerEntryStatus.COMPLETED)
	created_at = models.DateTimeField(auto_now_add=True)
	processed_at = models.DateTimeField(null=True, blank=True)

	class Meta:
		ordering = ["created_at"]
		constraints = [
			models.UniqueConstraint(
				fields=["account"],
				condition=Q(kind=LedgerEntryKind.REFERRAL_BONUS_CREDIT),
				name="unique_referral_bonus_per_account",
			),
			models.CheckConstraint(
				condition=(
					Q(kind__in=CREDIT_KINDS, amount__gte=0)
					| Q(kind__in=DEBIT_KINDS, amount__lt=0)
				),
				name="ledger_amount_sign_matches_kind",
			),
		]
		indexes = [
			models.Index(fields=["account", "kind", "status"], name="ledger_account_kind_status_idx"),
		]


class Referral(models.Model):
	"""
	referrer invited referred. Each account can be referred once (OneToOne on referred).
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	referrer = models.ForeignKey(Account, on_delete=models.CASCADE, related_name="referrals_made")
	referred = models.OneToOneField(Account, on_delete=models.CASCADE, related_name="referral")
	referral_code = models.CharField(max_length=20)
	created_at = models.DateTimeField(auto_now_add=True)


class ActivityLogEntry(models.Model):
	"""
	Append-only audit row. The engine writes these and never reads them back.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	account = models.ForeignKey(Account, null=True, blank=True, on_delete=models.SET_NULL)
	event_kind = models.CharField(max_length=50)
	description = models.TextField(blank=True, default="")
	origin = models.CharField(max_length=64, blank=True, default="")
	client_signature = models.TextField(blank=True, default="")
	payload = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		indexes = [
			models.Index(fields=["account", "event_kind"], name="activity_account_event_idx"),
		]


class SystemConfig(models.Model):
	"""
	Key/value overrides for engine parameters (see core.config).
	"""
	key = models.CharField(max_length=100, primary_key=True)
	value = models.TextField()
	description = models.TextField(blank=True, default="")
	updated_at = models.DateTimeField(auto_now=True)
