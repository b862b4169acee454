from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from speechhub import __version__
from speechhub.config import get_settings
from speechhub.utils.logging_config import setup_logging
from speechhub.utils.logger import get_logger

# Setup logging configuration
setup_logging()
logger = get_logger(__name__)

settings = get_settings()

app = FastAPI(
    title="SpeechHub API",
    description="Multi-provider text-to-speech with a single speech queue, "
                "native fallback and usage-based cost tracking.",
    version=__version__
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)


def load_routers():
    """Load routers with simplified error handling."""
    from speechhub.routers import tts

    routers = [
        ("tts", tts.router)
    ]

    loaded_routers = []
    for router_name, router in routers:
        try:
            app.include_router(router)
            loaded_routers.append(router_name)
            logger.info(f"Loaded {router_name} router")
        except Exception as e:
            logger.warning(f"Could not load {router_name} router: {e}")

    if not loaded_routers:
        raise RuntimeError("No routers could be loaded")

    logger.info(f"Successfully loaded routers: {', '.join(loaded_routers)}")


load_routers()


@app.on_event("startup")
async def startup_event():
    """Validate configuration and build the TTS service."""
    from speechhub.services.tts.service import initialize_tts_service

    for issue in settings.validate_configuration():
        logger.warning(f"Configuration issue: {issue}")

    if getattr(app.state, "tts_service", None) is None:
        app.state.tts_service = await initialize_tts_service(settings)
    logger.info(f"TTS service ready, active provider: {app.state.tts_service.get_provider().value}")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop any speech still playing."""
    service = getattr(app.state, "tts_service", None)
    if service is not None:
        service.stop()
        logger.info("TTS service stopped")


@app.get("/")
async def root():
    return {
        "message": "SpeechHub API",
        "version": __version__,
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    service = getattr(app.state, "tts_service", None)
    if service is None:
        return {"status": "starting"}
    return {
        "status": "healthy",
        "tts_enabled": service.enabled,
        "active_provider": service.get_provider().value,
        "providers": service.manager.get_available_providers()
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
