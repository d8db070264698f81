import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from canvas_expander.api.v1.routes import router as api_v1_router
from canvas_expander.config import get_settings
from canvas_expander.services.session import get_session

logger = logging.getLogger(__name__)


def load_environment(env_path: Path | None = None) -> bool:
    """
    Load environment variables from the project's .env file, if present.

    Prints a short startup banner so misconfiguration is visible in the
    server console.
    """
    env_path = env_path or Path(__file__).parent.parent / ".env"
    print("\n" + "=" * 60)
    print("🔧 LOADING ENVIRONMENT CONFIGURATION")
    print("=" * 60)
    print(f"Looking for .env file at: {env_path}")

    loaded = False
    if env_path.exists():
        loaded = load_dotenv(dotenv_path=env_path, override=True)
        print("✓ .env file loaded" if loaded else "⚠ .env file is empty")
    else:
        print("⚠ .env file not found")
        print("  Create it with: GEMINI_API_KEY=your_key_here")

    key = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY") or os.environ.get("API_KEY")
    if key:
        print(f"✓ Gemini API key loaded: {key[:6]}...")
    else:
        print("⚠ No Gemini API key found; expansion requests will fail")
    print("=" * 60 + "\n")
    return loaded


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Teardown: stop background runs and release every preview handle.
    session = app.dependency_overrides.get(get_session, get_session)()
    await session.close()
    logger.info("Canvas expander shut down")


def create_app() -> FastAPI:
    """
    Application factory for the Canvas Expander API.

    Keeping this as a separate function makes it easier to inject a test
    session through `app.dependency_overrides`.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Canvas Expander API",
        version="0.1.0",
        description="Batch aspect-ratio expansion of photos with generative outpainting.",
        lifespan=lifespan,
    )

    # Infrastructure-level health check (non-versioned) primarily for ops.
    @app.get("/health", tags=["health"])
    async def root_health_check() -> dict:
        """Simple root health check endpoint."""
        return {"status": "ok"}

    app.include_router(api_v1_router)

    return app


load_environment()
app = create_app()
