"""
X-Request-ID propagation; the id is read back by the logging filter
"""
import re
import uuid

REQUEST_ID_HEADER = 'X-Request-ID'
ENVIRON_KEY = 'request_id'

# ids coming from proxies or the frontend end up in log lines
_SAFE_ID = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


def incoming_request_id(environ):
    """The caller's id when it is safe to log, else a fresh uuid4 hex"""
    candidate = environ.get('HTTP_X_REQUEST_ID', '')
    if _SAFE_ID.match(candidate):
        return candidate
    return uuid.uuid4().hex


class RequestIdMiddleware:

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        request_id = incoming_request_id(environ)
        environ[ENVIRON_KEY] = request_id

        def _start_response(status, headers, exc_info=None):
            headers = [(k, v) for k, v in headers if k.lower() != REQUEST_ID_HEADER.lower()]
            headers.append((REQUEST_ID_HEADER, request_id))
            return start_response(status, headers, exc_info)

        return self.app(environ, _start_response)
