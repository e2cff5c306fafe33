from django.urls import path
from . import views
app_name = "payments"
urlpatterns = [
    path("api/create-payment", views.create_payment_view, name="create_payment"),
    path("api/webhook", views.webhook_view, name="webhook"),
    path("api/payment-status/<str:order_id>", views.payment_status_view, name="payment_status"),
    path("api/admin/payments", views.admin_payments_view, name="admin_payments"),
    # simulated gateway (test mode) and the return page
    path("test-payment", views.test_payment_view, name="test_payment"),
    path("pay/<str:request_id>", views.short_link_view, name="short_link"),
    path("payment-success", views.payment_success_view, name="payment_success"),
]
