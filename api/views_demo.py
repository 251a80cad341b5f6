"""Demo helper: seed the default survey catalog into a fresh database."""

import logging
from django.http import JsonResponse, HttpResponseBadRequest
from core.catalog import seed_default_catalog

logger = logging.getLogger(__name__)


def seed(request):
	"""
	POST: Create (or leave untouched) the default surveys, questions and config rows
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")
	created = seed_default_catalog()
	logger.info("Seeded default catalog: %s", created)
	return JsonResponse({"created": created}, status=201 if any(created.values()) else 200)
