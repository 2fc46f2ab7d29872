"""
DermaAI Diagnostic Engine - FastAPI Application

Thin request-handler surface over the analysis service:
- Case analysis (parallel provider dispatch + consensus)
- Case lookup
- Health check
"""
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dermaai import __version__
from dermaai.config import get_settings
from dermaai.core.analysis import build_default_service
from dermaai.core.case import CaseStatus
from dermaai.models.api import AnalyzeCaseRequest, ErrorResponse, HealthResponse
from dermaai.utils import get_logger, setup_logging, DermaAIError, CaseConflictError, CaseValidationError

logger = get_logger(__name__)

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and wire the analysis service."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    if getattr(app.state, "analysis_service", None) is None:
        app.state.analysis_service = build_default_service(settings)
    logger.info(f"Providers enabled: {', '.join(settings.enabled_providers()) or 'none'}")
    yield
    logger.info("DermaAI Diagnostic Engine shut down.")


app = FastAPI(
    title="DermaAI Diagnostic Engine",
    description="Multi-provider skin lesion analysis with consensus ranking",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _service(request: Request):
    service = getattr(request.app.state, "analysis_service", None)
    if service is None:
        service = request.app.state.analysis_service = build_default_service()
    return service


@app.exception_handler(DermaAIError)
async def dermaai_error_handler(request: Request, exc: DermaAIError) -> JSONResponse:
    if isinstance(exc, CaseValidationError):
        status_code = 422
    elif isinstance(exc, CaseConflictError):
        status_code = 409
    else:
        status_code = 400
    logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=ErrorResponse(**exc.to_dict()).model_dump())


@app.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    service = _service(request)
    providers = [c.provider_id for c in service.config_source() if c.enabled]
    return HealthResponse(version=__version__, providers=providers)


@app.post("/api/cases/analyze")
async def analyze_case(body: AnalyzeCaseRequest, request: Request) -> JSONResponse:
    """
    Analyze a case with every enabled provider.

    Returns the case together with non-persistent analysis errors.
    Responds 503 (same body shape) when no provider is enabled.
    Responds 409 when the caseId is already taken.
    """
    case = body.to_case()
    result = await _service(request).analyze_case(case)
    status_code = 503 if result.status is CaseStatus.FAILED else 200
    return JSONResponse(status_code=status_code, content=result.to_dict())


@app.get("/api/cases/{case_id}")
async def get_case(case_id: str, request: Request):
    snapshot = await _service(request).repository.get(case_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Case not found")
    return snapshot


# ---- Run with uvicorn ----
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
