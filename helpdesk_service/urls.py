"""URL configuration for the helpdesk service."""
from django.urls import include, path

urlpatterns = [
    path("api/", include("accounts.urls")),
    path("api/", include("tickets.urls")),
]

handler404 = "helpdesk_service.exceptions.not_found"
handler500 = "helpdesk_service.exceptions.server_error"
