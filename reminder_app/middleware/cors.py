"""CORS configuration for the reminder API."""
import logging

from fastapi.middleware.cors import CORSMiddleware

from reminder_app.config import Settings

logger = logging.getLogger(__name__)

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

# Preview deployments of the web client
PRODUCTION_ORIGIN_REGEX = r"https://.*\.vercel\.app"


def allowed_origins(settings: Settings):
    origins = list(DEV_ORIGINS)
    if settings.frontend_url and settings.frontend_url not in origins:
        origins.append(settings.frontend_url)
    return origins


def add_cors_middleware(app, settings: Settings):
    """Add CORS middleware; production also accepts preview deployment origins."""
    origins = allowed_origins(settings)
    if settings.is_production:
        logger.info(f"Using production CORS with origins {origins} and regex {PRODUCTION_ORIGIN_REGEX}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_origin_regex=PRODUCTION_ORIGIN_REGEX,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.info(f"Using development CORS with origins {origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
