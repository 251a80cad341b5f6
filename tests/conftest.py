"""Shared fixtures: a small survey catalog, accounts and a ledger credit helper."""

from decimal import Decimal

import pytest

from core.identity import resolve_account
from core.ledger import append_entry, refresh_cached_balance
from core.models import Survey, SurveyQuestion, QuestionKind, LedgerEntryKind


@pytest.fixture(autouse=True)
def engine_settings(settings):
	settings.MIN_WITHDRAWAL_AMOUNT = Decimal("5.00")
	settings.MAX_WITHDRAWAL_AMOUNT = Decimal("1000.00")
	settings.REFERRAL_BONUS_THRESHOLD = 3
	settings.REFERRAL_BONUS_AMOUNT = Decimal("10.00")
	settings.PAYOUT_WEBHOOK_SECRET = "test-secret"
	settings.PAYOUT_WEBHOOK_IP_ALLOWLIST = []
	settings.USE_X_FORWARDED_FOR = False
	return settings


@pytest.fixture
def survey(db):
	survey = Survey.objects.create(
		key="main_survey", title="Main Survey", description="Test survey", reward_amount=Decimal("5.00"),
	)
	SurveyQuestion.objects.create(
		survey=survey, key="q1", text="Did you know us?", kind=QuestionKind.SINGLE_CHOICE,
		options=["Yes", "No"], order_index=1,
	)
	SurveyQuestion.objects.create(
		survey=survey, key="q2", text="How would you help?", kind=QuestionKind.MULTI_CHOICE,
		options=["Donating", "Volunteering", "Sharing"], order_index=2,
	)
	SurveyQuestion.objects.create(
		survey=survey, key="q3", text="Where do you live?", kind=QuestionKind.FREE_TEXT, order_index=3,
	)
	return survey


@pytest.fixture
def small_survey(db):
	survey = Survey.objects.create(key="feedback", title="Feedback", reward_amount=Decimal("1.00"))
	SurveyQuestion.objects.create(
		survey=survey, key="feedback_q1", text="Rate us", kind=QuestionKind.SINGLE_CHOICE,
		options=["Good", "Bad"], order_index=1,
	)
	return survey


@pytest.fixture
def make_account(db):
	def _make(contact_key="user@example.com", **kwargs):
		account, _ = resolve_account(contact_key, "203.0.113.7", "pytest-agent", **kwargs)
		return account
	return _make


@pytest.fixture
def account(make_account):
	return make_account()


@pytest.fixture
def credit():
	"""Append a completed reward credit and refresh the cache, like a finished survey would."""
	def _credit(account, amount, reference="manual"):
		entry = append_entry(
			account, kind=LedgerEntryKind.REWARD_CREDIT, amount=Decimal(amount),
			description="test credit", reference=reference,
		)
		refresh_cached_balance(account)
		return entry
	return _credit
