"""Health check endpoint for load balancers and orchestration."""

import os
import time

from django.conf import settings
from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse
from django.utils import timezone

APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")
APP_START_TIME = time.time()


def health_check(request):
    """Returns 200 when the app and its database answer, 503 otherwise."""
    database = "up"
    status_code = 200
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
    except OperationalError:
        database = "down"
        status_code = 503

    response = JsonResponse(
        {
            "status": "healthy" if status_code == 200 else "unhealthy",
            "database": database,
            "version": APP_VERSION,
            "environment": "production" if not settings.DEBUG else "development",
            "timestamp": timezone.now().isoformat(),
            "uptime_seconds": int(time.time() - APP_START_TIME),
        },
        status=status_code,
    )
    # Stale health responses cause false failures.
    response["Cache-Control"] = "no-cache, no-store, must-revalidate, max-age=0"
    response["Pragma"] = "no-cache"
    return response
