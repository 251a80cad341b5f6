from decimal import Decimal

import pytest
from django.db import DatabaseError

from core import services
from core.errors import AlreadyCompleted, SurveyNotFound, SurveyInactive, AccountNotFound, StorageFailure
from core.ledger import balance
from core.models import ActivityLogEntry, Answer, CompletionRecord, LedgerEntry, LedgerEntryKind
from core.services import normalize_answers, submit_survey


class TestNormalizeAnswers:
	def test_last_value_wins_for_repeated_key(self):
		assert normalize_answers([("q1", "Yes"), ("q1", "No")]) == {"q1": "No"}

	def test_lists_become_ordered_unique_options(self):
		assert normalize_answers({"q2": ["b", "a", "b"]}) == {"q2": ["b", "a"]}

	def test_scalars_become_text_and_none_is_dropped(self):
		assert normalize_answers({"q1": 5, "q3": None}) == {"q1": "5"}

	def test_none_answers(self):
		assert normalize_answers(None) == {}


@pytest.mark.django_db
class TestRewardTransaction:
	"""Tests for survey completion and its one-time reward credit."""

	def test_completion_credits_reward_once(self, account, survey):
		result = submit_survey(
			account.pk, survey.pk, {"q1": "Yes", "q2": ["Donating", "Sharing"], "q3": "Valencia"},
			origin="203.0.113.7", client_signature="agent",
		)

		assert result.reward == Decimal("5.00")
		assert result.balance == Decimal("5.00")
		assert result.answers_saved == 3
		assert CompletionRecord.objects.filter(account=account, survey=survey).count() == 1
		entry = LedgerEntry.objects.get(account=account)
		assert entry.kind == LedgerEntryKind.REWARD_CREDIT
		assert entry.reference == "main_survey"
		account.refresh_from_db()
		assert account.balance == Decimal("5.00")

	def test_answers_are_stored_as_text_or_options(self, account, survey):
		submit_survey(account.pk, survey.pk, {"q1": "Yes", "q2": ["Donating"]})
		q1 = Answer.objects.get(account=account, question__key="q1")
		q2 = Answer.objects.get(account=account, question__key="q2")
		assert (q1.answer_text, q1.answer_options) == ("Yes", None)
		assert (q2.answer_text, q2.answer_options) == (None, ["Donating"])

	def test_unknown_question_keys_are_ignored(self, account, survey):
		result = submit_survey(account.pk, survey.pk, {"q1": "Yes", "q99": "??"})
		assert result.answers_saved == 1
		assert result.ignored_keys == ["q99"]
		assert result.reward == Decimal("5.00")

	def test_empty_answers_still_complete(self, account, survey):
		result = submit_survey(account.pk, survey.pk, {})
		assert result.answers_saved == 0
		assert balance(account.pk) == Decimal("5.00")

	def test_survey_by_key(self, account, survey):
		result = submit_survey(account.pk, "main_survey", {"q1": "No"})
		assert result.survey_key == "main_survey"

	def test_survey_by_digit_string(self, account, survey):
		assert submit_survey(account.pk, str(survey.pk), {}).survey_key == "main_survey"

	@pytest.mark.parametrize("ref", ["\u00b2", "\u0663", "nope"])
	def test_non_ascii_digits_are_survey_keys(self, account, survey, ref):
		with pytest.raises(SurveyNotFound):
			submit_survey(account.pk, ref, {})

	def test_resubmission_is_rejected_without_side_effects(self, account, survey):
		submit_survey(account.pk, survey.pk, {"q1": "Yes"})
		with pytest.raises(AlreadyCompleted):
			submit_survey(account.pk, survey.pk, {"q1": "No"})

		assert balance(account.pk) == Decimal("5.00")
		assert LedgerEntry.objects.filter(account=account).count() == 1
		assert Answer.objects.get(account=account, question__key="q1").answer_text == "Yes"

	def test_different_surveys_each_pay(self, account, survey, small_survey):
		submit_survey(account.pk, survey.pk, {})
		result = submit_survey(account.pk, small_survey.pk, {"feedback_q1": "Good"})
		assert result.balance == Decimal("6.00")

	def test_unknown_survey(self, account):
		with pytest.raises(SurveyNotFound):
			submit_survey(account.pk, 424242, {})

	def test_inactive_survey(self, account, survey):
		survey.is_active = False
		survey.save()
		with pytest.raises(SurveyInactive):
			submit_survey(account.pk, survey.pk, {"q1": "Yes"})
		assert not CompletionRecord.objects.exists()

	def test_unknown_account(self, survey):
		with pytest.raises(AccountNotFound):
			submit_survey("00000000-0000-0000-0000-000000000000", survey.pk, {})

	def test_storage_failure_rolls_back_everything(self, account, survey, monkeypatch):
		def failing_append(*args, **kwargs):
			raise DatabaseError("connection reset")

		monkeypatch.setattr(services, "append_entry", failing_append)
		with pytest.raises(StorageFailure):
			submit_survey(account.pk, survey.pk, {"q1": "Yes"})

		assert not CompletionRecord.objects.exists()
		assert not Answer.objects.exists()
		assert balance(account.pk) == Decimal("0.00")

	def test_retry_after_storage_failure_succeeds(self, account, survey, monkeypatch):
		def failing_append(*args, **kwargs):
			raise DatabaseError("deadlock detected")

		with monkeypatch.context() as m:
			m.setattr(services, "append_entry", failing_append)
			with pytest.raises(StorageFailure):
				submit_survey(account.pk, survey.pk, {})

		result = submit_survey(account.pk, survey.pk, {})
		assert result.balance == Decimal("5.00")

	def test_completion_is_audited(self, account, survey):
		submit_survey(account.pk, survey.pk, {"q1": "Yes"}, origin="203.0.113.7", client_signature="agent")
		log = ActivityLogEntry.objects.get(account=account, event_kind="survey_completed")
		assert log.origin == "203.0.113.7"
		assert log.payload["survey_key"] == "main_survey"
		assert log.payload["responses"] == [{"question_key": "q1", "answer": "Yes"}]
