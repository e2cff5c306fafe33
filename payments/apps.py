from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    name = "payments"

    def ready(self):
        # Pick the gateway (simulated or live) once, at startup
        from .services import get_payment_service
        get_payment_service()
