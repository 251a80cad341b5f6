import pytest
from django.db import IntegrityError

from core import identity
from core.errors import StorageFailure
from core.identity import (
	REFERRAL_CODE_ALPHABET, REFERRAL_CODE_LENGTH, generate_referral_code, normalize_contact_key,
	resolve_account, synthesize_contact_key,
)
from core.models import Account


class TestContactKeys:
	def test_normalize_strips_and_lowercases(self):
		assert normalize_contact_key("  Ana@Example.COM ") == "ana@example.com"

	def test_normalize_blank_is_absent(self):
		assert normalize_contact_key("   ") is None
		assert normalize_contact_key(None) is None

	def test_synthesized_keys_are_distinct_for_same_origin(self):
		keys = {synthesize_contact_key("10.0.0.1") for _ in range(50)}
		assert len(keys) == 50

	def test_synthesized_key_sanitizes_origin(self):
		key = synthesize_contact_key("2001:db8::1")
		assert key.startswith("temp_")
		assert key.endswith("_2001db81@temp.local")

	def test_referral_code_shape(self):
		code = generate_referral_code()
		assert len(code) == REFERRAL_CODE_LENGTH
		assert set(code) <= set(REFERRAL_CODE_ALPHABET)


@pytest.mark.django_db
class TestResolveAccount:
	"""Known contact keys map to one account; absent keys always create a new one."""

	def test_first_use_creates_account(self):
		account, created = resolve_account("ana@example.com", "198.51.100.1", "agent/1.0")
		assert created
		assert account.contact_key == "ana@example.com"
		assert account.last_origin == "198.51.100.1"
		assert account.referral_code

	def test_same_key_resolves_to_same_account(self):
		first, _ = resolve_account("ana@example.com", "198.51.100.1", "agent/1.0")
		second, created = resolve_account("ANA@example.com ", "198.51.100.2", "agent/2.0")
		assert not created
		assert second.pk == first.pk
		assert Account.objects.count() == 1
		first.refresh_from_db()
		assert first.last_origin == "198.51.100.2"
		assert first.client_signature == "agent/2.0"

	def test_absent_key_creates_distinct_accounts(self):
		a, _ = resolve_account(None, "198.51.100.1")
		b, _ = resolve_account(None, "198.51.100.1")
		assert a.pk != b.pk
		assert a.contact_key.startswith("temp_")

	def test_referral_code_collision_is_retried(self, monkeypatch):
		existing, _ = resolve_account("ana@example.com")
		codes = iter([existing.referral_code, "ZZZZ2222"])
		monkeypatch.setattr(identity, "generate_referral_code", lambda: next(codes))

		account, created = resolve_account("ben@example.com")
		assert created
		assert account.referral_code == "ZZZZ2222"

	def test_gives_up_after_repeated_collisions(self, monkeypatch):
		existing, _ = resolve_account("ana@example.com")
		monkeypatch.setattr(identity, "generate_referral_code", lambda: existing.referral_code)
		with pytest.raises(StorageFailure):
			resolve_account("ben@example.com")

	def test_lost_insert_race_returns_winner(self, monkeypatch):
		winner = Account.objects.create(contact_key="ana@example.com", referral_code="WINNER22")
		real_filter = Account.objects.filter
		calls = {"n": 0}

		def filter_hiding_first_lookup(*args, **kwargs):
			# The pre-insert lookup misses, as if the winner committed just after it
			calls["n"] += 1
			if calls["n"] == 1:
				return Account.objects.none()
			return real_filter(*args, **kwargs)

		monkeypatch.setattr(Account.objects, "filter", filter_hiding_first_lookup)
		account, created = resolve_account("ana@example.com")
		assert not created
		assert account.pk == winner.pk

	def test_insert_failure_is_not_leaked_as_integrity_error(self, monkeypatch):
		def boom(**kwargs):
			raise IntegrityError("unexpected")

		monkeypatch.setattr(Account.objects, "create", boom)
		with pytest.raises(StorageFailure):
			resolve_account(None, "198.51.100.1")
