from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared by every router that declares @limiter.limit(...)
limiter = Limiter(key_func=get_remote_address)
