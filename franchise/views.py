from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET


@require_GET
def health_view(request):
    cfg = settings.INSTAMOJO
    return JsonResponse({
        "status": "healthy",
        "timestamp": timezone.now().isoformat(),
        "environment": settings.APP_ENV,
        "instamojo": {
            "configured": bool(cfg.get("API_KEY") and cfg.get("AUTH_TOKEN")),
            "testMode": bool(cfg.get("TEST_MODE")),
            "apiUrl": cfg.get("API_URL"),
        },
    })


def error_404_view(request, exception):
    return JsonResponse(
        {"success": False, "message": "Endpoint not found", "path": request.path},
        status=404,
    )


def error_500_view(request):
    return JsonResponse({"success": False, "message": "Internal server error"}, status=500)
