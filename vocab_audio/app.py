"""
Vocabulary Audio Service FastAPI Application

REST API for pronunciation audio generation, generated asset serving and
card export.

Endpoints:
    POST /api/audio/generate - Submit a generation job
    GET /api/audio/{job_id} - Job status
    GET /api/audio/download/{job_id} - Proxy download of finished audio
    GET /api/audio/generated/{filename} - Stored audio or fallback marker
    GET /api/images/generated/{filename} - Stored card image
    POST /api/cards/generate - Regenerate audio and images for cards
    POST /api/export - Zip archive of card images and example audio
    GET /health - Health check

Features:
    - Job-based generation with bounded retries and polling
    - Provider audio never exposed directly; clients use the proxy endpoint
    - Minimum-size validation on every served audio file
    - CORS support for web clients
"""

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from .asset_paths import AUDIO_DIR, IMAGE_DIR, check_filename
from .config import AudioConfig
from .errors import AssetPathError, CorruptAsset, GenerationTimeout, ProviderUnavailable
from .services import AudioServices, build_services

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

SERVICE_NAME = "Vocabulary Audio Service"
SERVICE_VERSION = "1.0.0"

# Initialize FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    description="Pronunciation audio generation and card export",
    version=SERVICE_VERSION,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

config = AudioConfig.from_env()
logging.getLogger().setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
app.state.services = build_services(config)


def get_services(request: Request) -> AudioServices:
    return request.app.state.services


# Request/Response Models
class GenerateRequest(BaseModel):
    """Request model for the generation endpoint."""
    text: str = Field(..., description="Text to synthesize")
    language: Optional[str] = Field(default=None, description="Language tag (e.g., th-TH)")


class GenerateResponse(BaseModel):
    success: bool = Field(..., description="Whether the job was accepted")
    id: str = Field(..., description="Provider job id")


class JobStatusResponse(BaseModel):
    status: str = Field(..., description="Pending, Done or Error")
    location: Optional[str] = Field(default=None, description="Audio location once Done")


class ContentIdsRequest(BaseModel):
    """Request model for card generation and export."""
    content_ids: List[int] = Field(..., alias="contentIds", description="Catalog item ids")


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""
    status: str = Field(..., description="Service status (healthy, degraded)")
    provider: str = Field(..., description="Active generation provider")
    provider_error: Optional[str] = Field(default=None, description="Provider configuration problem")
    store_stats: dict = Field(default={}, description="Asset store statistics")
    resolver_stats: dict = Field(default={}, description="Resolver statistics")
    generator_stats: dict = Field(default={}, description="Generation client statistics")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# API Endpoints
@app.post("/api/audio/generate", response_model=GenerateResponse)
async def generate_audio(request: GenerateRequest, services: AudioServices = Depends(get_services)):
    """
    Submit a generation job.

    Raises:
        HTTPException: 400 (empty text), 500 (provider failure)
    """
    try:
        if not request.text.strip():
            raise HTTPException(status_code=400, detail="Text is required")

        language = request.language or services.config.default_language
        job_id = await services.generator.submit(request.text, language)
        return GenerateResponse(success=True, id=job_id)

    except HTTPException:
        raise
    except ProviderUnavailable as e:
        logger.error(f"Error generating audio: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate audio")
    except Exception as e:
        logger.error(f"Audio generation error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/api/audio/download/{job_id}")
async def download_audio(job_id: str, services: AudioServices = Depends(get_services)):
    """
    Proxy download of a finished job's audio.

    Raises:
        HTTPException: 404 (not ready or under-size), 500 (provider failure)
    """
    try:
        payload = await services.generator.fetch_finished(job_id)
        return Response(
            content=payload,
            media_type="audio/mpeg",
            headers={"Content-Disposition": f'attachment; filename="{job_id}.mp3"'},
        )

    except GenerationTimeout:
        raise HTTPException(status_code=404, detail="Audio not ready")
    except CorruptAsset as e:
        logger.warning(f" Refusing to serve audio for job {job_id}: {e}")
        raise HTTPException(status_code=404, detail="Audio not available")
    except ProviderUnavailable as e:
        logger.error(f"Error downloading audio: {e}")
        raise HTTPException(status_code=500, detail="Failed to download audio")
    except Exception as e:
        logger.error(f"Audio download error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/api/audio/generated/{filename}")
async def get_generated_audio(filename: str, services: AudioServices = Depends(get_services)):
    """
    Serve stored audio (`.mp3`) or a speech fallback marker (`.json`).

    Raises:
        HTTPException: 400 (invalid filename), 404 (missing or under-size)
    """
    try:
        path = f"{AUDIO_DIR}/{check_filename(filename)}"
        if not services.store.exists(path):
            raise HTTPException(status_code=404, detail="Audio file not found")

        if filename.endswith(".json"):
            return JSONResponse(content=services.store.read_marker(path))

        return FileResponse(
            path=str(services.store.base_dir / path),
            media_type="audio/mpeg",
            filename=filename
        )

    except HTTPException:
        raise
    except AssetPathError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Generated audio retrieval error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/api/images/generated/{filename}")
async def get_generated_image(filename: str, services: AudioServices = Depends(get_services)):
    """Serve a stored card image."""
    try:
        path = f"{IMAGE_DIR}/{check_filename(filename)}"
        if not services.store.exists(path):
            raise HTTPException(status_code=404, detail="Image file not found")

        return FileResponse(
            path=str(services.store.base_dir / path),
            media_type="image/svg+xml",
            filename=filename
        )

    except HTTPException:
        raise
    except AssetPathError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Generated image retrieval error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/api/audio/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
async def get_audio_status(job_id: str, services: AudioServices = Depends(get_services)):
    """
    Provider job status.

    Raises:
        HTTPException: 500 (provider failure)
    """
    try:
        job = await services.generator.poll(job_id)
        return JobStatusResponse(status=job.status.value, location=job.result_location)

    except ProviderUnavailable as e:
        logger.error(f"Error checking audio status: {e}")
        raise HTTPException(status_code=500, detail="Failed to check audio status")
    except Exception as e:
        logger.error(f"Audio status error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/cards/generate")
async def generate_cards(request: ContentIdsRequest, services: AudioServices = Depends(get_services)):
    """
    Regenerate word audio, example audio and card image for each id.

    Cards are processed sequentially; per-card failures are reported in
    `results` and never fail the whole request.
    """
    try:
        results = await services.cards.generate_cards(request.content_ids)
        return {"success": True, "results": [result.to_dict() for result in results]}

    except Exception as e:
        logger.error(f"Error in generate-cards: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/export")
async def export_cards(request: ContentIdsRequest, services: AudioServices = Depends(get_services)):
    """
    Build a zip of card images and example audio.

    The `X-Export-Failures` header carries the number of cards whose audio
    could not be included.

    Raises:
        HTTPException: 404 (unknown content ids), 500 (export failed)
    """
    try:
        items = []
        missing = []
        for content_id in request.content_ids:
            item = await services.catalog.get_item(content_id)
            if item is None:
                missing.append(content_id)
            else:
                items.append(item)
        if missing:
            raise HTTPException(status_code=404, detail=f"Cards not found: {missing}")

        result = await services.exporter.export_batch(items)
        return Response(
            content=result.archive_bytes,
            media_type="application/zip",
            headers={
                "Content-Disposition": f'attachment; filename="{result.filename}"',
                "X-Export-Failures": str(len(result.failures)),
            },
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Export error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/health", response_model=HealthResponse)
async def health_check(services: AudioServices = Depends(get_services)):
    """
    Health check endpoint.

    Returns:
        HealthResponse with provider status and component statistics
    """
    valid, error = services.provider.validate_config()
    stats = services.get_stats()
    return HealthResponse(
        status="healthy" if valid else "degraded",
        provider=services.provider.name,
        provider_error=error,
        store_stats=stats["store"],
        resolver_stats=stats["resolver"],
        generator_stats=stats["generator"],
    )


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "endpoints": {
            "generate": "POST /api/audio/generate",
            "status": "GET /api/audio/{job_id}",
            "download": "GET /api/audio/download/{job_id}",
            "generated_audio": "GET /api/audio/generated/{filename}",
            "generated_image": "GET /api/images/generated/{filename}",
            "cards": "POST /api/cards/generate",
            "export": "POST /api/export",
            "health": "GET /health",
            "docs": "GET /docs"
        }
    }


# Startup event
@app.on_event("startup")
async def startup_event():
    """Log startup information."""
    services = app.state.services
    logger.info("=" * 60)
    logger.info(f" {SERVICE_NAME} Starting")
    logger.info(f"   Provider: {services.provider.name}")
    logger.info(f"   Storage: {services.store.base_dir}")
    logger.info(f"   Retries: {services.config.generation_retries} x {services.config.poll_max_attempts} polls")
    logger.info(f"   Min audio size: {services.config.min_audio_bytes} bytes")
    logger.info("=" * 60)


# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    """Close provider sessions and log statistics."""
    services = app.state.services
    stats = services.generator.get_stats()
    await services.close()
    logger.info("=" * 60)
    logger.info(f" {SERVICE_NAME} Shutting Down")
    logger.info(f"   Jobs submitted: {stats.get('submitted', 0)}")
    logger.info(f"   Jobs completed: {stats.get('completed', 0)}")
    logger.info(f"   Exhausted generations: {stats.get('exhausted', 0)}")
    logger.info("=" * 60)


def run(port: Optional[int] = None):
    import uvicorn

    uvicorn.run(
        "vocab_audio.app:app",
        host="0.0.0.0",
        port=port or config.service_port,
        log_level=config.log_level.lower(),
        reload=False
    )


if __name__ == "__main__":
    run()
