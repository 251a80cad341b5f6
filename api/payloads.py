"""Boundary validation for operation request bodies.

Bodies are parsed into small frozen dataclasses before any transaction opens; anything
that does not fit the expected shape is rejected with PayloadError (HTTP 400).
JSON numbers are parsed as Decimal so amounts never pass through float.
"""

import json
import uuid
from dataclasses import dataclass
from decimal import Decimal

from core.constants import to_money

SETTLEMENT_OUTCOMES = ("processing", "completed", "failed", "cancelled")


class PayloadError(ValueError):
	pass


def load_json(raw: bytes) -> dict:
	try:
		body = json.loads((raw or b"{}").decode("utf-8"), parse_float=Decimal)
	except (UnicodeDecodeError, json.JSONDecodeError) as exc:
		raise PayloadError("Invalid JSON") from exc
	if not isinstance(body, dict):
		raise PayloadError("JSON object expected")
	return body


def _first(body: dict, *names):
	for name in names:
		if name in body:
			return body[name]
	return None


def _optional_str(body: dict, *names) -> str | None:
	value = _first(body, *names)
	if value is None:
		return None
	if not isinstance(value, str):
		raise PayloadError(f"{names[0]} must be a string")
	return value.strip() or None


def _uuid(value, name: str) -> uuid.UUID:
	try:
		return uuid.UUID(str(value))
	except (TypeError, ValueError) as exc:
		raise PayloadError(f"{name} must be a UUID") from exc


def _answer_value(key: str, value):
	if isinstance(value, bool):
		return "yes" if value else "no"
	if value is None or isinstance(value, (str, int, Decimal)):
		return value
	if isinstance(value, list) and all(isinstance(v, str) for v in value):
		return value
	raise PayloadError(f"answer for {key!r} must be a string, number or list of strings")


def _answers(raw) -> list[tuple[str, object]]:
	"""
	{"q1": "Yes", "q4": ["a", "b"]} or [{"question": "q1", "answer": "Yes"}, ...] -> [(key, value)].
	Order is preserved so a repeated key resolves to its last value downstream.
	"""
	if raw is None:
		return []
	if isinstance(raw, dict):
		items = raw.items()
	elif isinstance(raw, list):
		items = []
		for item in raw:
			if not isinstance(item, dict) or "question" not in item:
				raise PayloadError("answers list items must be objects with 'question' and 'answer'")
			items.append((item["question"], item.get("answer")))
	else:
		raise PayloadError("answers must be an object or a list")

	pairs = []
	for key, value in items:
		if not isinstance(key, str) or not key.strip():
			raise PayloadError("question keys must be non-empty strings")
		key = key.strip()
		pairs.append((key, _answer_value(key, value)))
	return pairs


@dataclass(frozen=True)
class SubmissionPayload:
	survey_id: int
	answers: list
	contact_key: str | None
	referral_code: str | None
	origin: str
	client_signature: str


def parse_submission(body: dict, survey_id: int, *, origin: str, client_signature: str) -> SubmissionPayload:
	return SubmissionPayload(
		survey_id=int(survey_id),
		answers=_answers(_first(body, "answers", "responses")),
		contact_key=_optional_str(body, "email", "userEmail", "contact_key"),
		referral_code=_optional_str(body, "referral_code", "ref"),
		origin=origin,
		client_signature=client_signature,
	)


@dataclass(frozen=True)
class WithdrawalPayload:
	account_id: uuid.UUID
	amount: Decimal
	destination: str


def parse_withdrawal(body: dict) -> WithdrawalPayload:
	account_id = _first(body, "account_id", "userId")
	if account_id is None:
		raise PayloadError("account_id required")
	amount = _first(body, "amount")
	if amount is None or isinstance(amount, (bool, list, dict)):
		raise PayloadError("amount required")
	try:
		amount = to_money(amount)
	except (TypeError, ValueError) as exc:
		raise PayloadError("amount must be a decimal string or number") from exc
	return WithdrawalPayload(
		account_id=_uuid(account_id, "account_id"),
		amount=amount,
		destination=_optional_str(body, "destination", "paypal_email", "paypalEmail") or "",
	)


@dataclass(frozen=True)
class SettlementPayload:
	withdrawal_id: uuid.UUID
	outcome: str
	payout_reference: str
	notes: str


def parse_settlement(body: dict) -> SettlementPayload:
	withdrawal_id = _first(body, "withdrawal_id")
	if withdrawal_id is None:
		raise PayloadError("withdrawal_id required")
	outcome = _optional_str(body, "outcome", "status")
	if outcome not in SETTLEMENT_OUTCOMES:
		raise PayloadError(f"outcome must be one of {', '.join(SETTLEMENT_OUTCOMES)}")
	return SettlementPayload(
		withdrawal_id=_uuid(withdrawal_id, "withdrawal_id"),
		outcome=outcome,
		payout_reference=_optional_str(body, "payout_reference") or "",
		notes=_optional_str(body, "notes") or "",
	)
