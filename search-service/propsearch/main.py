import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile

from .bootstrap import Services, build_services
from .config import Settings
from .errors import ConfigurationError, QueryValidationError, RetrievalError, TranscriptionError
from .listings import upsert_properties
from .schemas import SearchRequest, SearchResponse, UpsertRequest, UpsertResponse, VoiceSearchResponse

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 15 * 1024 * 1024


def create_app(services: Optional[Services] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.services is None:
            settings = Settings.from_env()
            logging.basicConfig(
                level=settings.log_level,
                format="%(asctime)s %(levelname)s %(name)s: %(message)s",
            )
            app.state.services = build_services(settings)
            logger.info(
                "Search service ready (provider=%s, collection=%s)",
                settings.embed_provider, settings.collection,
            )
        yield

    app = FastAPI(title="Property Search Service", version="0.3.0", lifespan=lifespan)
    app.state.services = services

    def get_services(request: Request) -> Services:
        s = request.app.state.services
        if s is None:
            raise HTTPException(status_code=503, detail={"error": "not_ready"})
        return s

    @app.get("/health")
    def health(request: Request):
        s = get_services(request)
        return {
            "status": "ok",
            "collection": s.settings.collection,
            "provider": s.settings.embed_provider,
            "embedding_model": s.settings.embedding_model,
        }

    @app.post("/search", response_model=SearchResponse)
    def search(req: SearchRequest, request: Request):
        s = get_services(request)
        logger.info("POST /search > query=%r", req.query)
        try:
            matches = s.engine.search(req.query, top_k=req.topK, min_score=req.minScore)
        except QueryValidationError as e:
            logger.info("POST /search < validation_error %s", e.issues)
            raise HTTPException(status_code=400, detail={"error": "validation_error", "issues": e.issues})
        except (RetrievalError, ConfigurationError) as e:
            logger.exception("POST /search < ERROR")
            raise HTTPException(status_code=500, detail={"error": "search_failed", "message": str(e)})
        logger.info("POST /search < OK count=%d", len(matches))
        return SearchResponse(results=matches)

    @app.post("/search/voice", response_model=VoiceSearchResponse)
    def voice_search(
        request: Request,
        file: UploadFile = File(...),
        topK: Optional[int] = Form(None, ge=1, le=50),
        minScore: Optional[float] = Form(None, ge=0, le=1),
    ):
        s = get_services(request)
        if s.transcriber is None:
            raise HTTPException(status_code=503, detail={"error": "voice_search_disabled"})
        audio = file.file.read(MAX_AUDIO_BYTES + 1)
        if not audio:
            raise HTTPException(status_code=400, detail={"error": "no_file"})
        if len(audio) > MAX_AUDIO_BYTES:
            raise HTTPException(status_code=413, detail={"error": "file_too_large", "limit": MAX_AUDIO_BYTES})
        logger.info("POST /search/voice > %s (%d bytes)", file.filename, len(audio))
        try:
            text = s.transcriber.transcribe(audio, file.filename, file.content_type)
            matches = s.engine.search(text, top_k=topK, min_score=minScore)
        except QueryValidationError as e:
            logger.info("POST /search/voice < validation_error %s", e.issues)
            raise HTTPException(status_code=400, detail={"error": "validation_error", "issues": e.issues})
        except (TranscriptionError, RetrievalError, ConfigurationError) as e:
            logger.exception("POST /search/voice < ERROR")
            raise HTTPException(status_code=500, detail={"error": "voice_search_failed", "message": str(e)})
        logger.info("POST /search/voice < OK text=%r count=%d", text, len(matches))
        return VoiceSearchResponse(text=text, results=matches)

    @app.post("/upsert", response_model=UpsertResponse)
    def upsert(req: UpsertRequest, request: Request):
        s = get_services(request)
        try:
            ids = upsert_properties(req.properties, s.embeddings, s.index)
        except (RetrievalError, ConfigurationError) as e:
            logger.exception("POST /upsert < ERROR")
            raise HTTPException(status_code=500, detail={"error": "upsert_failed", "message": str(e)})
        return UpsertResponse(count=len(ids), ids=ids)

    return app


app = create_app()
