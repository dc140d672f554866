"""
Rate limiter shared by the upload routes and registered on the app.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from exam_tester.config.settings import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
