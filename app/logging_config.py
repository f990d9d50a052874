"""
Logging setup for the CRM backend
"""
import logging
import os
from logging.handlers import RotatingFileHandler

from flask import has_request_context, request

from app.middleware.request_id import ENVIRON_KEY

LOG_FORMAT = '%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s'


class RequestIdFilter(logging.Filter):
    """Stamp each record with the id assigned by RequestIdMiddleware"""

    def filter(self, record):
        record.request_id = '-'
        if has_request_context():
            record.request_id = request.environ.get(ENVIRON_KEY, '-')
        return True


def setup_logging(app):
    """Configure root logging from the app config. Safe to call more than once."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, '_crm_configured', False):
        return

    formatter = logging.Formatter(LOG_FORMAT)
    request_filter = RequestIdFilter()

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.addFilter(request_filter)
    root.addHandler(console)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(request_filter)
        root.addHandler(file_handler)

    # werkzeug logs every request at INFO; keep it quieter than the app
    logging.getLogger('werkzeug').setLevel(max(level, logging.WARNING))
    root._crm_configured = True
