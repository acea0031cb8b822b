import os
from dotenv import load_dotenv

# Load environment-specific configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

if ENVIRONMENT == "development":
    load_dotenv(".env.development")
elif ENVIRONMENT == "production":
    load_dotenv(".env.production")
else:
    load_dotenv()  # Fallback to default .env

# Supabase settings
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

# Which store backs the app: "supabase" or "memory" (local development only)
STORE_BACKEND = os.getenv("STORE_BACKEND", "supabase").lower()

# Logging settings
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO").upper()

# Teacher provisioning rules
MIN_PASSWORD_LENGTH = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
MIN_FULL_NAME_LENGTH = int(os.getenv("MIN_FULL_NAME_LENGTH", "2"))
PROVISIONING_SOURCE = "admin_create_teacher"
