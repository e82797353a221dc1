# paytovote/config.py
# Central place for settings read from the environment (.env supported)
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str = "") -> list:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# --- Database Config ---
MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB = os.getenv("MONGO_DB", "paytovote")

# Partial unique index on votes(poll_id, user_id) for PENDING/APPROVED
LIVE_VOTE_UNIQUE_INDEX = _env_bool("LIVE_VOTE_UNIQUE_INDEX", True)

# --- Security & JWT Config ---
# In production, use secure, environment-variable-based secrets
SECRET_KEY = os.getenv("SECRET_KEY", "a_very_secret_key_for_dev_only")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Exact-match login identifiers allowed into the admin dashboard
ADMIN_LOGIN_IDENTIFIERS = _env_list("ADMIN_LOGIN_IDENTIFIERS")

# Institution IDs / usernames are mapped onto this domain for the identity store
LOGIN_EMAIL_DOMAIN = os.getenv("LOGIN_EMAIL_DOMAIN", "students.example.edu")

# --- Proof Storage Config ---
PROOF_STORE = os.getenv("PROOF_STORE", "local")  # "cloudinary" or "local"
CLOUDINARY_NAME = os.getenv("CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("API_KEY")
CLOUDINARY_API_SECRET = os.getenv("API_SECRET")
PROOF_FOLDER = os.getenv("PROOF_FOLDER", "proofs")
LOCAL_UPLOAD_DIR = os.getenv("LOCAL_UPLOAD_DIR", "./uploads/proofs")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")
MAX_PROOF_BYTES = int(os.getenv("MAX_PROOF_BYTES", str(5 * 1024 * 1024)))

# --- Payment Instructions (shown before proof upload) ---
PAYMENT_ACCOUNT_NAME = os.getenv("PAYMENT_ACCOUNT_NAME", "Dept. Project Fund")
PAYMENT_ACCOUNT_NUMBER = os.getenv("PAYMENT_ACCOUNT_NUMBER", "0012345678")
PAYMENT_BANK_NAME = os.getenv("PAYMENT_BANK_NAME", "OPay Wallet")

# Refuse a resubmission that reuses the reference of a rejected vote
REJECT_REUSED_TRANSACTION_REF = _env_bool("REJECT_REUSED_TRANSACTION_REF", False)

# --- Poll limits ---
MANIFESTO_MAX_LENGTH = 100
MIN_CANDIDATES = 2

# --- App ---
CORS_ORIGINS = _env_list("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
