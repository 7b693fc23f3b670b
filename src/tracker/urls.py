"""URL configuration for the tracker project."""

from django.contrib import admin
from django.urls import include, path

from tracker.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health_check"),
    path("api/auth/", include("accounts.urls")),
    path("api/", include("assets.urls")),
]
