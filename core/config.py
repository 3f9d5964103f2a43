import os
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    # Verifier widget presentation
    OTP_PRESENTATION_MODE: str = os.getenv("OTP_PRESENTATION_MODE", "invisible")
    OTP_BYPASS_VERIFICATION: bool = _to_bool(os.getenv("OTP_BYPASS_VERIFICATION"))
    OTP_CONTAINER_ID: str = os.getenv("OTP_CONTAINER_ID", "recaptcha-container")

    # Settle delays (milliseconds)
    OTP_CLEANUP_SETTLE_MS: int = int(os.getenv("OTP_CLEANUP_SETTLE_MS", "200"))
    OTP_DOM_SETTLE_MS: int = int(os.getenv("OTP_DOM_SETTLE_MS", "100"))
    OTP_CONFLICT_SETTLE_MS: int = int(os.getenv("OTP_CONFLICT_SETTLE_MS", "500"))
    OTP_SIMULATED_DELAY_MS: int = int(os.getenv("OTP_SIMULATED_DELAY_MS", "1500"))

    # Firebase (phone)
    FIREBASE_API_KEY: str = os.getenv("FIREBASE_API_KEY", "")
    FIREBASE_AUTH_URL: str = os.getenv(
        "FIREBASE_AUTH_URL",
        "https://identitytoolkit.googleapis.com/v1"
    )

    # Supabase (email)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_ANON_KEY: str = os.getenv("SUPABASE_ANON_KEY", "")
    PASSWORD_RESET_REDIRECT_URL: str = os.getenv(
        "PASSWORD_RESET_REDIRECT_URL",
        "http://localhost:8080/auth"
    )

    PROVIDER_TIMEOUT: float = float(os.getenv("PROVIDER_TIMEOUT", "10"))

    ALLOWED_ORIGINS: str = os.getenv("ALLOWED_ORIGINS", "")

settings = Settings()
