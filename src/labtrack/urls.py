"""URL configuration for the LabTrack project."""

from django.urls import include, path

from labtrack.views import health_check

urlpatterns = [
    path("health/", health_check, name="health_check"),
    path("api/", include("equipment.urls")),
]
