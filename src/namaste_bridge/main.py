"""
NAMASTE Terminology Bridge - FastAPI Application Entry Point

A FHIR R4-shaped terminology mapping service resolving NAMASTE traditional
medicine codes to WHO ICD-11 TM2, SNOMED CT and LOINC.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from namaste_bridge.config import settings
from namaste_bridge.db.session import AsyncSessionLocal, init_db
from namaste_bridge.dependencies import get_icd11_client
from namaste_bridge.errors import InvalidInput, StoreUnavailable
from namaste_bridge.logger import configure_logging
from namaste_bridge.routes import codesystem, mappings, search, translate
from namaste_bridge.schema import ErrorResponse, HealthResponse
from namaste_bridge.services.biomedical_index import Tm2BiomedicalIndex
from namaste_bridge.services.category_fallback import CategoryFallbackTable
from namaste_bridge.services.icd11_client import ICD11Client

SERVICE_NAME = "namaste-bridge"
VERSION = "0.2.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    configure_logging(settings.log_level)
    logger.info("Starting NAMASTE terminology bridge...")

    await init_db()
    app.state.fallback_table = CategoryFallbackTable.default()
    app.state.biomedical_index = Tm2BiomedicalIndex.from_csv(settings.tm2_mapping_csv)
    app.state.icd11_client = ICD11Client()

    logger.info(f"ICD-11 API: {'configured' if app.state.icd11_client.configured else 'not configured'}")
    logger.info(f"TM2 biomedical mappings: {len(app.state.biomedical_index)}")

    yield

    logger.info("Shutting down NAMASTE terminology bridge...")


# Create FastAPI application
app = FastAPI(
    title="NAMASTE Terminology Bridge",
    description="Terminology mapping service linking NAMASTE with ICD-11 TM2, SNOMED CT and LOINC",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error="invalid_input", message=str(exc)).model_dump(mode="json"),
    )


@app.exception_handler(StoreUnavailable)
async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=503,
        content=ErrorResponse(error="store_unavailable", message=str(exc)).model_dump(mode="json"),
    )


# Include routers
app.include_router(codesystem.router, prefix="/fhir", tags=["FHIR CodeSystem"])
app.include_router(search.router, prefix="/terminology", tags=["Terminology Search"])
app.include_router(translate.router, prefix="", tags=["Translation"])
app.include_router(mappings.router, prefix="", tags=["Curated Mappings"])


async def database_status() -> str:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return "unavailable"
    return "connected"


@app.get("/health", response_model=HealthResponse)
async def health_check(icd11_client: ICD11Client = Depends(get_icd11_client)):
    """Health check endpoint for monitoring and load balancers."""
    database = await database_status()
    return HealthResponse(
        status="healthy" if database == "connected" else "degraded",
        service=SERVICE_NAME,
        version=VERSION,
        database=database,
        icd11_api=await icd11_client.health_check(),
    )


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "message": "NAMASTE Terminology Bridge",
        "description": "NAMASTE to ICD-11 TM2 / SNOMED CT / LOINC terminology mapping",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "fhir_codesystem": "/fhir/CodeSystem/namaste",
            "fhir_conceptmap": "/fhir/ConceptMap/namaste-to-icd11",
            "search": "/terminology/search",
            "translate": "/translate",
            "resolve": "/resolve",
            "mappings": "/mappings",
            "statistics": "/mappings/statistics"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "namaste_bridge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
