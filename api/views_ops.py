"""Operational endpoints that move money (survey submission, withdrawal, settlement)."""

import hmac, hashlib, ipaddress, logging
from django.conf import settings
from django.db import connection, DatabaseError
from django.http import JsonResponse, HttpResponseBadRequest, HttpResponseForbidden
from django.middleware.csrf import get_token
from django.views.decorators.csrf import csrf_exempt

from core import services
from core.constants import format_money
from core.errors import (
	RewardsError, AlreadyCompleted, SurveyNotFound, AccountNotFound, WithdrawalNotFound,
	InvalidTransition, ConstraintConflict, StorageFailure,
)
from core.identity import resolve_account
from .payloads import PayloadError, load_json, parse_submission, parse_withdrawal, parse_settlement

logger = logging.getLogger(__name__)

# Anything not listed is a 400 (validation-type outcome)
ERROR_STATUS = {
	AlreadyCompleted: 409,
	ConstraintConflict: 409,
	InvalidTransition: 409,
	SurveyNotFound: 404,
	AccountNotFound: 404,
	WithdrawalNotFound: 404,
	StorageFailure: 503,
}


def error_response(exc: RewardsError) -> JsonResponse:
	status = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400)
	return JsonResponse({"error": exc.code, "detail": exc.message}, status=status)


def payload_error(exc: PayloadError) -> JsonResponse:
	return JsonResponse({"error": "invalid_payload", "detail": str(exc)}, status=400)


def health(request):
	try:
		with connection.cursor() as cursor:
			cursor.execute("SELECT 1")
	except DatabaseError:
		logger.exception("Health check could not reach the database")
		return JsonResponse({"ok": False, "database": "disconnected"}, status=503)
	return JsonResponse({"ok": True, "database": "connected"})


def csrf(request):
	# Forces creation/rotation of the CSRF token AND sets 'csrftoken' cookie
	return JsonResponse({"csrftoken": get_token(request)})


def _client_origin(request) -> str:
	if getattr(settings, "USE_X_FORWARDED_FOR", False):
		forwarded = request.headers.get("X-Forwarded-For", "")
		if forwarded:
			return forwarded.split(",")[0].strip()[:64]
	return (request.META.get("REMOTE_ADDR") or "unknown")[:64]


def submit_survey(request, survey_id: int):
	"""
	POST: Resolve the submitter, persist answers and credit the survey reward once.
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")

	try:
		payload = parse_submission(
			load_json(request.body),
			survey_id,
			origin=_client_origin(request),
			client_signature=request.headers.get("User-Agent", "")[:500],
		)
	except PayloadError as e:
		return payload_error(e)

	try:
		# Unknown or inactive surveys are rejected before any account or referral is written
		services.get_survey(payload.survey_id)
		account, _ = resolve_account(
			payload.contact_key, payload.origin, payload.client_signature, referral_code=payload.referral_code,
		)
		result = services.submit_survey(
			account.pk,
			payload.survey_id,
			payload.answers,
			origin=payload.origin,
			client_signature=payload.client_signature,
		)
	except RewardsError as e:
		return error_response(e)

	return JsonResponse({
		"success": True,
		"account_id": result.account_id,
		"referral_code": account.referral_code,
		"survey_key": result.survey_key,
		"responses_count": result.answers_saved,
		"ignored_keys": result.ignored_keys,
		"reward": format_money(result.reward),
		"balance": format_money(result.balance),
	}, status=201)


def request_withdrawal(request):
	"""
	POST: Reserve part of the balance for payout (pending until the operator settles it)
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")

	try:
		payload = parse_withdrawal(load_json(request.body))
	except PayloadError as e:
		return payload_error(e)

	try:
		withdrawal = services.request_withdrawal(
			payload.account_id,
			payload.amount,
			payload.destination,
			origin=_client_origin(request),
			client_signature=request.headers.get("User-Agent", "")[:500],
		)
	except RewardsError as e:
		return error_response(e)

	return JsonResponse({
		"success": True,
		"withdrawal_id": str(withdrawal.id),
		"amount": format_money(withdrawal.amount),
		"status": withdrawal.status,
		"balance": format_money(withdrawal.account.balance),
	}, status=201)


# --- Helpers -----------------------------------------------------------------

def _hmac_valid(raw_body: bytes, provided_sig: str, secret: str) -> bool:
	mac = hmac.new(key=secret.encode("utf-8"), msg=raw_body, digestmod=hashlib.sha256)
	expected = mac.hexdigest()
	return hmac.compare_digest(expected, provided_sig or "")


def _ip_allowed(request) -> bool:
	allowed = getattr(settings, "PAYOUT_WEBHOOK_IP_ALLOWLIST", [])
	if not allowed:
		return True
	try:
		src = ipaddress.ip_address(request.META.get("REMOTE_ADDR", "127.0.0.1"))
		return any(src in ipaddress.ip_network(net) for net in allowed)
	except ValueError:
		return False


# --- Webhooks ----------------------------------------------------------------

@csrf_exempt
def payout_webhook(request):
	"""
	Settlement instructions from the payout operator. Validates HMAC + optional IP allowlist.
	Body format (example):
	{
	  "withdrawal_id": "<uuid>",
	  "outcome": "completed",          // processing | completed | failed | cancelled
	  "payout_reference": "PAYPAL-9X", // optional
	  "notes": "paid in batch 42"      // optional
	}
	Replaying the same instruction is a no-op.
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST required")

	if not _ip_allowed(request):
		return HttpResponseForbidden("IP not allowed")

	secret = getattr(settings, "PAYOUT_WEBHOOK_SECRET", None)
	raw = request.body or b""
	if not secret or not _hmac_valid(raw, request.headers.get("X-Signature", ""), secret):
		return HttpResponseForbidden("Bad signature")

	try:
		payload = parse_settlement(load_json(raw))
	except PayloadError as e:
		return payload_error(e)

	try:
		if payload.outcome == "processing":
			withdrawal = services.mark_withdrawal_processing(payload.withdrawal_id, notes=payload.notes)
		elif payload.outcome == "cancelled":
			withdrawal = services.cancel_withdrawal(payload.withdrawal_id, notes=payload.notes)
		else:
			withdrawal = services.settle_withdrawal(
				payload.withdrawal_id,
				payload.outcome,
				payout_reference=payload.payout_reference,
				notes=payload.notes,
			)
	except RewardsError as e:
		return error_response(e)

	return JsonResponse({"ok": True, "withdrawal_id": str(withdrawal.id), "status": withdrawal.status})
