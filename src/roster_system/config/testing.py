import os

SECRET_KEY = "test-secret"
JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
JWT_EXPIRES_HOURS = 1

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "roster_db_test"),
}
DB_POOL_SIZE = 2

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/15")
CACHE_TTL_SECONDS = 300

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

LOG_LEVEL = "WARNING"
DEBUG = False
TESTING = True

AUTO_INIT_DB = False
AUTO_SEED_DB = False

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Admin@123"
