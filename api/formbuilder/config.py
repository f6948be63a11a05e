
import os

DATABASE_URL = os.getenv("DATABASE_URL")
SECRET_KEY = os.getenv("SECRET_KEY", "devsecret")
TOKEN_EXPIRATION_SECONDS = int(os.getenv("TOKEN_EXPIRATION_SECONDS", "7200"))
MAX_LOGIN_ATTEMPTS = int(os.getenv("MAX_LOGIN_ATTEMPTS", "5"))
LOCK_TIME_SECONDS = int(os.getenv("LOCK_TIME_SECONDS", "600"))
FORM_LOOKUP_TIMEOUT_SECONDS = float(os.getenv("FORM_LOOKUP_TIMEOUT_SECONDS", "5"))
LOOKUP_POOL_SIZE = int(os.getenv("LOOKUP_POOL_SIZE", "4"))
FORMS_PAGE_SIZE = int(os.getenv("FORMS_PAGE_SIZE", "20"))
SUBMISSIONS_PAGE_SIZE = int(os.getenv("SUBMISSIONS_PAGE_SIZE", "50"))
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:3001").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
