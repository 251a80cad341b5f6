"""Identity resolver: (contact key or None, origin, client signature) -> Account.

Creation is insert-then-fetch: we try to INSERT and, if the unique contact_key
rejects it because a concurrent request created the same account first, we fetch
that row instead. Two racing requests for one email therefore end up on one Account.
"""

import itertools
import logging
import re
import secrets
import time

from django.db import transaction, IntegrityError, DatabaseError
from django.utils import timezone

from .errors import StorageFailure
from .models import Account
from .services import register_referral

logger = logging.getLogger(__name__)

REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
MAX_CREATE_ATTEMPTS = 5

_synth_counter = itertools.count()


def normalize_contact_key(contact_key: str | None) -> str | None:
	if contact_key is None:
		return None
	key = str(contact_key).strip().lower()
	return key or None


def synthesize_contact_key(origin: str | None) -> str:
	"""
	Contact key for anonymous submitters: nanosecond clock + per-process counter +
	random suffix + sanitized origin, e.g. temp_1729180000000000000_3_9f2a1c_10001@temp.local
	"""
	sanitized = re.sub(r"[^a-zA-Z0-9]", "", origin or "")[:40] or "unknown"
	return f"temp_{time.time_ns()}_{next(_synth_counter)}_{secrets.token_hex(3)}_{sanitized}@temp.local"


def generate_referral_code() -> str:
	return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def _touch(account: Account, origin: str, client_signature: str) -> Account:
	# Observed origin/signature are informational only; last writer wins.
	now = timezone.now()
	Account.objects.filter(pk=account.pk).update(
		last_origin=origin, client_signature=client_signature, updated_at=now,
	)
	account.last_origin, account.client_signature, account.updated_at = origin, client_signature, now
	return account


def resolve_account(
	contact_key: str | None,
	origin: str = "",
	client_signature: str = "",
	*,
	referral_code: str | None = None,
) -> tuple[Account, bool]:
	"""
	Return (account, created).

	- known contact key: existing account, origin/signature refreshed
	- unknown or absent key: new account with a fresh referral code; when referral_code
	  names another account, the referral is registered (and may trigger its bonus)
	"""
	key = normalize_contact_key(contact_key)
	origin = (origin or "")[:64]
	client_signature = client_signature or ""

	try:
		if key is not None:
			existing = Account.objects.filter(contact_key=key).first()
			if existing:
				return _touch(existing, origin, client_signature), False

		for _ in range(MAX_CREATE_ATTEMPTS):
			candidate = key or synthesize_contact_key(origin)
			try:
				with transaction.atomic():
					account = Account.objects.create(
						contact_key=candidate,
						referral_code=generate_referral_code(),
						last_origin=origin,
						client_signature=client_signature,
					)
			except IntegrityError:
				if key is not None:
					# Another request created this contact key first; use its row
					existing = Account.objects.filter(contact_key=key).first()
					if existing:
						return _touch(existing, origin, client_signature), False
				# Referral code (or synthesized key) collided: retry with fresh values
				continue
			break
		else:
			raise StorageFailure("could not allocate a unique account after retries")
	except DatabaseError as exc:
		logger.exception("Identity resolution failed for %s", key or "<anonymous>")
		raise StorageFailure("identity resolution failed, safe to retry") from exc

	logger.info("Created account %s (%s)", account.pk, account.contact_key)
	if referral_code:
		register_referral(referral_code, account, origin=origin)
	return account, True
