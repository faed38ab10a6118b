"""
Practice Ledger - WSGI entry point for Gunicorn.

Environment validation runs before Django loads so a misconfigured
deployment fails at boot rather than on the first invoice request.
"""

import logging
import os
import sys

from django.core.exceptions import ImproperlyConfigured

logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "practiceledger.settings")

try:
    from practiceledger.env_validation import validate_env
    validate_env()
except ImproperlyConfigured as e:
    logger.critical(f"Refusing to start Practice Ledger: {e}")
    sys.exit(1)

from django.core.wsgi import get_wsgi_application  # noqa: E402

application = get_wsgi_application()
