"""
Shared Flask extension instances.

Kept apart from the factory so blueprints and services can import them
without importing the app.
"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO

socketio = SocketIO()

# Storage URI and enablement come from RATELIMIT_* config keys at init_app time.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=['300 per minute'],
)
