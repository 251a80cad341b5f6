from django.core.management.base import BaseCommand

from core.catalog import seed_default_catalog


class Command(BaseCommand):
	help = "Create the default surveys, questions and engine config rows (idempotent)."

	def handle(self, *args, **options):
		created = seed_default_catalog()
		self.stdout.write(self.style.SUCCESS(
			f"Seeded {created['surveys']} survey(s), {created['questions']} question(s), {created['config']} config row(s)."
		))
