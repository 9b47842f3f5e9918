from .settings import *
import os
from dotenv import load_dotenv
load_dotenv(os.path.join(BASE_DIR, '..', '.env'))

DEBUG = False
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')

# Routes are shared between web and worker processes
CACHES["routes"] = {
    "BACKEND": "django.core.cache.backends.redis.RedisCache",
    "LOCATION": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    "TIMEOUT": ROUTING["CACHE_TTL_SECONDS"],
}
