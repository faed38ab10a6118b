import logging
import re
import threading
import uuid

logger = logging.getLogger(__name__)

_thread_locals = threading.local()

# Caller-supplied ids end up in logs and audit rows; anything else is replaced.
SAFE_REQUEST_ID = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


class RequestIDFilter(logging.Filter):
    """Stamps the current request id onto every log record."""

    def filter(self, record):
        record.request_id = getattr(_thread_locals, 'request_id', 'no-id')
        return True


class RequestIDMiddleware:
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.headers.get('X-Request-ID', '')
        request_id = incoming if SAFE_REQUEST_ID.match(incoming) else str(uuid.uuid4())
        request.request_id = request_id
        _thread_locals.request_id = request_id

        try:
            response = self.get_response(request)
        finally:
            # Worker threads are reused across requests.
            _thread_locals.request_id = 'no-id'
        response['X-Request-ID'] = request_id
        return response
