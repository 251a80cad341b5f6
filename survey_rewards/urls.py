"""URL routing: everything the engine exposes lives under /api/."""

from django.urls import path, include


urlpatterns = [
	path("api/", include("api.urls")),
]
