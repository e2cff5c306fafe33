import json

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .services import get_enquiry_service


def _json_body(request):
    try: return json.loads(request.body.decode("utf-8"))
    except Exception: return None


@csrf_exempt
@require_POST
def send_notification_view(request):
    body = _json_body(request)
    if not isinstance(body, dict):
        return JsonResponse({"success": False, "message": "Invalid JSON body"}, status=400)
    kind, data = body.get("type"), body.get("data")
    if not kind or not isinstance(data, dict) or not data:
        return JsonResponse({"success": False, "message": "Missing required fields"}, status=400)
    if kind != "enquiry":
        return JsonResponse({"success": False, "message": "Unsupported notification type"}, status=400)

    enquiry = get_enquiry_service().record_enquiry(data)
    return JsonResponse(
        {"success": True, "message": "Enquiry received successfully", "enquiryId": enquiry.enquiry_id},
        status=201,
    )


@require_GET
def admin_enquiries_view(request):
    enquiries = [e.as_dict() for e in get_enquiry_service().list_enquiries()]
    return JsonResponse({"success": True, "count": len(enquiries), "data": enquiries})
