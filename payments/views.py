import json
import logging
import secrets

from django.http import Http404, HttpResponse, HttpResponseBadRequest, JsonResponse
from django.shortcuts import redirect, render
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .errors import GatewayError, InvalidSignature, NotFound, ValidationError
from .services import get_payment_service

logger = logging.getLogger(__name__)


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


def _error(message, status, **extra):
    return JsonResponse({"success": False, "message": message, **extra}, status=status)


@csrf_exempt
@require_POST
def create_payment_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return _error("Invalid JSON body", 400)

    try:
        data = get_payment_service().create_payment(body.get("customerData"), body.get("paymentData"))
    except ValidationError as e:
        return _error(str(e), 400)
    except GatewayError as e:
        logger.error("Payment creation failed: %s", e)
        return _error("Failed to create payment request", 500, error=str(e))

    return JsonResponse(
        {"success": True, "message": "Payment request created successfully", "data": data},
        status=201,
    )


@csrf_exempt
@require_POST
def webhook_view(request):
    # Instamojo posts form-encoded; the simulation page posts JSON
    if request.content_type == "application/json":
        payload = _json_body(request)
        if not isinstance(payload, dict):
            return HttpResponseBadRequest("Invalid JSON")
    else:
        payload = request.POST.dict()
    logger.info("Webhook received: %s", {k: v for k, v in payload.items() if k != "mac"})

    try:
        get_payment_service().handle_webhook(payload)
    except InvalidSignature:
        return HttpResponseBadRequest("Invalid MAC")
    return HttpResponse("OK")


@require_GET
def payment_status_view(request, order_id: str):
    try:
        order = get_payment_service().get_status(order_id)
    except NotFound as e:
        return _error(str(e), 404)
    return JsonResponse({"success": True, "data": order.status_dict()})


@require_GET
def admin_payments_view(request):
    orders = [o.as_dict() for o in get_payment_service().list_orders()]
    return JsonResponse({"success": True, "count": len(orders), "data": orders})


@require_GET
def test_payment_view(request):
    """Checkout page standing in for Instamojo while in test mode."""
    if not get_payment_service().test_mode:
        raise Http404("Test payments are disabled")
    ctx = {
        "payment_request_id": request.GET.get("payment_request_id", ""),
        "order_id": request.GET.get("order_id", ""),
        "amount": request.GET.get("amount", ""),
        "buyer_name": request.GET.get("buyer_name", ""),
        "payment_id": "MOJO_TEST_" + secrets.token_hex(6).upper(),
    }
    return render(request, "payments/test_payment.html", ctx)


@require_GET
def short_link_view(request, request_id: str):
    order = get_payment_service().find_by_request_id(request_id)
    if order is None or not order.long_url:
        raise Http404("Unknown payment link")
    return redirect(order.long_url)


@require_GET
def payment_success_view(request):
    # DO NOT trust query status; ask the gateway
    payment_id = request.GET.get("payment_id", "")
    request_id = request.GET.get("payment_request_id", "")
    service = get_payment_service()

    verified = False
    if payment_id and request_id:
        try:
            verified = service.verify_payment(request_id, payment_id)
        except GatewayError as e:
            logger.error("Payment verification failed for %s/%s: %s", request_id, payment_id, e)

    order = service.find_by_request_id(request_id) if request_id else None
    ctx = {
        "verified": verified,
        "payment_id": payment_id,
        "order_id": order.order_id if order else "",
    }
    return render(request, "payments/payment_success.html", ctx)
