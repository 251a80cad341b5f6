"""Report (and optionally repair) accounts whose cached balance drifted from the ledger."""

from django.core.management.base import BaseCommand, CommandError

from core.ledger import reconcile_balances


class Command(BaseCommand):
	help = "Compare Account.balance with the derived ledger sum for every account."

	def add_arguments(self, parser):
		parser.add_argument("--fix", action="store_true", help="Rewrite mismatching cached balances.")
		parser.add_argument(
			"--fail-on-mismatch", action="store_true", help="Exit non-zero when any mismatch is found.",
		)

	def handle(self, *args, **options):
		mismatches = reconcile_balances(fix=options["fix"])
		for m in mismatches:
			self.stdout.write(f"{m.account_id} {m.contact_key}: cached={m.cached} derived={m.derived}")
		if not mismatches:
			self.stdout.write(self.style.SUCCESS("All cached balances match the ledger."))
			return
		verb = "Repaired" if options["fix"] else "Found"
		self.stdout.write(self.style.WARNING(f"{verb} {len(mismatches)} mismatching account(s)."))
		if options["fail_on_mismatch"] and not options["fix"]:
			raise CommandError("cached balances diverge from the ledger")
