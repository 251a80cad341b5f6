"""Read-only endpoints (surveys, balances, ledger, admin counters). No locking needed."""

from datetime import timedelta
from django.db.models import Count, Sum
from django.http import JsonResponse
from django.utils import timezone

from core import ledger
from core.constants import ZERO, format_money
from core.models import (
	Account, Answer, Survey, SurveyQuestion, CompletionRecord, LedgerEntry, LedgerEntryStatus, WithdrawalRequest,
	WithdrawalStatus, CREDIT_KINDS, DEBIT_KINDS,
)


def _account_or_404(account_id):
	account = Account.objects.filter(pk=account_id).first()
	if account is None:
		return None, JsonResponse({"error": "account_not_found", "detail": f"account {account_id} not found"}, status=404)
	return account, None


def surveys(request):
	"""
	GET: Active surveys with their question counts
	"""
	rows = Survey.objects.filter(is_active=True).annotate(question_count=Count("questions")).order_by("id")
	data = [
		{
			"id": s.id,
			"survey_key": s.key,
			"title": s.title,
			"description": s.description,
			"reward_amount": format_money(s.reward_amount),
			"question_count": s.question_count,
		}
		for s in rows
	]
	return JsonResponse(data, safe=False)


def survey_questions(request, survey_id: int):
	rows = SurveyQuestion.objects.filter(survey_id=survey_id).order_by("order_index", "id")
	data = [
		{
			"id": q.id,
			"question_key": q.key,
			"question_text": q.text,
			"question_type": q.kind,
			"options": q.options,
			"is_required": q.is_required,
			"order_index": q.order_index,
		}
		for q in rows
	]
	return JsonResponse(data, safe=False)


def balance(request, account_id):
	"""
	GET: Derived balance (authoritative) next to the cached column
	"""
	account, missing = _account_or_404(account_id)
	if missing:
		return missing
	derived = ledger.balance(account.pk)
	return JsonResponse({
		"account_id": str(account.pk),
		"balance": format_money(derived),
		"cached_balance": format_money(account.balance),
		"referral_code": account.referral_code,
		"referral_count": account.referral_count,
	})


def account_ledger(request, account_id):
	"""
	GET: Latest 50 ledger entries of an account, newest first
	"""
	account, missing = _account_or_404(account_id)
	if missing:
		return missing
	rows = LedgerEntry.objects.filter(account=account).order_by("-created_at")[:50]
	data = [
		{
			"id": str(r.id),
			"kind": r.kind,
			"amount": format_money(r.amount),
			"status": r.status,
			"description": r.description,
			"reference": r.reference,
			"created_at": r.created_at.isoformat(),
			"processed_at": r.processed_at.isoformat() if r.processed_at else None,
		}
		for r in rows
	]
	return JsonResponse(data, safe=False)


def admin_stats(request):
	week_ago = timezone.now() - timedelta(days=7)
	rewards = LedgerEntry.objects.filter(
		kind__in=CREDIT_KINDS, status=LedgerEntryStatus.COMPLETED,
	).aggregate(s=Sum("amount"))["s"] or ZERO
	# Debits are stored negative; report withdrawals as a positive total
	withdrawn = LedgerEntry.objects.filter(
		kind__in=DEBIT_KINDS, status=LedgerEntryStatus.COMPLETED,
	).aggregate(s=Sum("amount"))["s"] or ZERO
	return JsonResponse({
		"total_users": Account.objects.count(),
		"new_users_week": Account.objects.filter(created_at__gt=week_ago).count(),
		"total_surveys_completed": CompletionRecord.objects.count(),
		"surveys_completed_week": CompletionRecord.objects.filter(completed_at__gt=week_ago).count(),
		"total_rewards_paid": format_money(rewards),
		"total_withdrawals": format_money(-withdrawn),
		"pending_withdrawals": WithdrawalRequest.objects.filter(status=WithdrawalStatus.PENDING).count(),
	})


def admin_responses(request):
	"""
	GET: Latest 100 answers with who gave them, the survey title and the question text
	"""
	rows = Answer.objects.select_related("account", "survey", "question").order_by("-answered_at")[:100]
	data = [
		{
			"email": a.account.contact_key,
			"ip_address": a.account.last_origin,
			"survey_title": a.survey.title,
			"question_text": a.question.text,
			"answer_text": a.answer_text,
			"answer_options": a.answer_options,
			"completed_at": a.answered_at.isoformat(),
		}
		for a in rows
	]
	return JsonResponse(data, safe=False)


def reconciliation(request):
	"""
	GET: Accounts whose cached balance differs from the ledger (should always be empty)
	"""
	mismatches = ledger.reconcile_balances(fix=False)
	return JsonResponse({
		"accounts_checked": Account.objects.count(),
		"mismatches": [
			{
				"account_id": m.account_id,
				"contact_key": m.contact_key,
				"cached": format_money(m.cached),
				"derived": format_money(m.derived),
			}
			for m in mismatches
		],
		"match": not mismatches,
	})
