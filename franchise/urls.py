from django.urls import include, path

from . import views

urlpatterns = [
    path("health", views.health_view, name="health"),
    path("", include("payments.urls")),
    path("", include("enquiries.urls")),
]

handler404 = "franchise.views.error_404_view"
handler500 = "franchise.views.error_500_view"
