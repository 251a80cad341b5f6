"""Public API surface of the reward engine.

- /demo/seed: load the default survey catalog
- /surveys, /surveys/<id>/questions: read-only catalog
- /surveys/<id>/submit: record a completion and credit its reward
- /withdrawals: reserve balance for payout
- /accounts/<uuid>/balance, /accounts/<uuid>/ledger: read-only views for verification
- /webhooks/payout: operator settlement (HMAC signed)
"""

from django.urls import path
from .views_demo import seed
from .views_ops import health, csrf, submit_survey, request_withdrawal, payout_webhook
from .views_read import surveys, survey_questions, balance, account_ledger, admin_stats, admin_responses, reconciliation


urlpatterns = [
	path("health", health),
	path("csrf", csrf),
	path("demo/seed", seed),
	path("surveys", surveys),
	path("surveys/<int:survey_id>/questions", survey_questions),
	path("surveys/<int:survey_id>/submit", submit_survey, name="submit_survey"),
	path("withdrawals", request_withdrawal, name="request_withdrawal"),
	path("accounts/<uuid:account_id>/balance", balance),
	path("accounts/<uuid:account_id>/ledger", account_ledger),
	path("admin/stats", admin_stats),
	path("admin/responses", admin_responses),
	path("debug/reconciliation", reconciliation),
	path("webhooks/payout", payout_webhook, name="payout_webhook"),
]
