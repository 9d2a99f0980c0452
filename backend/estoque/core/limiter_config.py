import os

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

READ_LIMIT = "100 per minute"
WRITE_LIMIT = "30 per minute"

# Global Limiter instance to be imported by controllers.
# main.create_app disables it in test mode when RATE_LIMIT_ENABLED=0.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per hour", "200 per minute"],
    storage_uri=os.getenv("LIMITER_STORAGE_URI", "memory://"),
    enabled=True,
)
