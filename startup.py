"""
Startup script for deployment
Handles:
- Provider configuration check
- Uvicorn server launch
"""

import os
import sys

from core.config import settings


def check_phone_provider():
    """Report which phone provider will serve SMS codes"""
    if settings.OTP_BYPASS_VERIFICATION:
        print("⚠️  OTP_BYPASS_VERIFICATION is on: phone codes are simulated (test numbers only)")
        return True

    if not settings.FIREBASE_API_KEY:
        print("⚠️  WARNING: FIREBASE_API_KEY not found in environment")
        print("⚠️  Phone sign-in will not work!")
        return False

    print(f"✓ Firebase phone provider configured ({settings.OTP_PRESENTATION_MODE} verifier)")
    return True


def check_email_provider():
    """Report whether Supabase email codes are configured"""
    if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
        print("⚠️  WARNING: SUPABASE_URL / SUPABASE_ANON_KEY not found in environment")
        print("⚠️  Email verification and password recovery will not work!")
        return False

    print(f"✓ Supabase email provider configured ({settings.SUPABASE_URL})")
    return True


def main():
    """Main startup sequence"""
    print("=" * 60)
    print("🚀 Wellness Auth API - Startup")
    print("=" * 60)

    print("\n[1/3] Checking phone provider...")
    check_phone_provider()

    print("\n[2/3] Checking email provider...")
    check_email_provider()

    print("\n[3/3] Starting uvicorn server...")
    print("=" * 60)

    port = int(os.getenv("PORT", "8000"))

    import uvicorn

    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=port,
            log_level="info",
            access_log=True
        )
    except KeyboardInterrupt:
        print("\n⏹️  Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
