from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Callable, Tuple
import logging

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from api.dependencies import limiter
from api.routes import otp
from core.config import settings
from services.otp import (
    ChallengeClient,
    ContainerHost,
    FirebasePhoneProvider,
    SimulatedPhoneProvider,
    SupabaseEmailProvider,
    VerifierLifecycleManager,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

# Set specific log levels
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)  # Reduce noise from access logs
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

Services = Tuple[VerifierLifecycleManager, ChallengeClient]


def build_services() -> Services:
    """Wire providers, the verifier lifecycle and the challenge client from settings"""
    host = ContainerHost()

    if settings.OTP_BYPASS_VERIFICATION:
        logger.info("Verification bypass enabled, using simulated phone provider")
        phone_provider = SimulatedPhoneProvider(host, delay=settings.OTP_SIMULATED_DELAY_MS / 1000)
    else:
        if not settings.FIREBASE_API_KEY:
            logger.warning("FIREBASE_API_KEY not configured, phone codes will fail")
        phone_provider = FirebasePhoneProvider(
            settings.FIREBASE_API_KEY,
            host,
            timeout=settings.PROVIDER_TIMEOUT,
        )

    if not settings.SUPABASE_URL or not settings.SUPABASE_ANON_KEY:
        logger.warning("Supabase credentials not configured, email codes will fail")
    email_provider = SupabaseEmailProvider(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        timeout=settings.PROVIDER_TIMEOUT,
    )

    lifecycle = VerifierLifecycleManager(phone_provider, host)
    client = ChallengeClient(
        phone_provider,
        email_provider,
        lifecycle=lifecycle,
        bypass_verification=settings.OTP_BYPASS_VERIFICATION,
    )
    return lifecycle, client


def create_app(services_factory: Callable[[], Services] = build_services) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        lifecycle, client = services_factory()
        app.state.lifecycle = lifecycle
        app.state.challenge_client = client
        yield
        # Page/session teardown
        lifecycle.cleanup()
        await client.phone_provider.close()
        await client.email_provider.close()

    app = FastAPI(
        title="Wellness Auth API",
        description="Phone and email one-time-code verification",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    allowed_origins = settings.ALLOWED_ORIGINS.split(",") if settings.ALLOWED_ORIGINS else ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(otp.router)

    @app.get("/")
    async def root():
        return {"message": "Wellness Auth API", "status": "running"}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()
