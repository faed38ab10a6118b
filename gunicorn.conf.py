"""
Practice Ledger - Gunicorn WSGI Server Configuration
====================================================

Worker sizing, timeouts and logging for the billing API.
PDF export renders inside the request, so the timeout leaves room for it.
"""

import logging
import multiprocessing
import os

# =============================================================================
# ENVIRONMENT DETECTION
# =============================================================================

IS_PRODUCTION = os.getenv("PRODUCTION") == "true"

logging.basicConfig(
    level=logging.INFO if IS_PRODUCTION else logging.DEBUG,
    format="[%(asctime)s] %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# SERVER BINDING
# =============================================================================

PORT = int(os.getenv("PORT", 8000))
bind = [f"0.0.0.0:{PORT}"]


# =============================================================================
# WORKER CONFIGURATION
# =============================================================================

def calculate_workers():
    """Two workers per core plus one, capped for small hosts."""
    return min((multiprocessing.cpu_count() * 2) + 1, 9)


workers = int(os.getenv("WEB_CONCURRENCY", calculate_workers()))
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", 4))

# Restart workers periodically; WeasyPrint holds on to font caches.
max_requests = int(os.getenv("GUNICORN_MAX_REQUESTS", 1000))
max_requests_jitter = int(os.getenv("GUNICORN_MAX_REQUESTS_JITTER", 100))


# =============================================================================
# TIMEOUT & RESOURCE LIMITS
# =============================================================================

timeout = int(os.getenv("GUNICORN_TIMEOUT", 120))
graceful_timeout = int(os.getenv("GUNICORN_GRACEFUL_TIMEOUT", 10))
keepalive = 5

limit_request_line = 8190
limit_request_fields = 100
limit_request_field_size = 8190


# =============================================================================
# APPLICATION LOADING
# =============================================================================

wsgi_app = "practiceledger.wsgi:application"
preload_app = True
reload = os.getenv("GUNICORN_RELOAD", "false").lower() == "true"

forwarded_allow_ips = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")
if IS_PRODUCTION:
    secure_scheme_headers = {"X-FORWARDED-PROTO": "https"}


# =============================================================================
# LOGGING
# =============================================================================

accesslog = "-"
errorlog = "-"
loglevel = "info" if IS_PRODUCTION else "debug"
capture_output = True

access_log_format = (
    '%(h)s %(l)s %(u)s %(t)s "%(r)s" %(s)s %(b)s '
    '"%(f)s" "%(a)s" response_time=%(D)s_us worker_id=%(p)s'
)

proc_name = "practiceledger"


# =============================================================================
# STARTUP HOOKS
# =============================================================================

def when_ready(server):
    logger.info(f"Gunicorn ready at {server.address} with {workers} workers")
    logger.info("GET /health/ for liveness and database readiness")


def post_fork(server, worker):
    """Open the database connection before the first request lands."""
    from django.db import connection
    from django.db.utils import OperationalError

    try:
        connection.ensure_connection()
        logger.info(f"Worker {worker.pid}: database connection pre-warmed")
    except OperationalError as e:
        logger.warning(f"Worker {worker.pid}: failed to pre-warm database connection: {e}")


def on_exit(server):
    logger.info("Gunicorn shutting down gracefully...")
