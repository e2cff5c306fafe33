class PaymentError(Exception):
    """Base class for payment flow failures."""


class ValidationError(PaymentError):
    """Client input rejected before any order is created."""


class InvalidSignature(PaymentError):
    """Webhook MAC did not match (or was required and missing)."""


class NotFound(PaymentError):
    pass


class GatewayError(PaymentError):
    """Outbound call to the payment gateway failed."""


class GatewayUnreachable(GatewayError):
    pass


class GatewayTimeout(GatewayError):
    pass


class GatewayAuthError(GatewayError):
    pass


class GatewayRequestError(GatewayError):
    """The gateway rejected the request; message is the provider's own."""
