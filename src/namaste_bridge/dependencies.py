"""
FastAPI dependencies shared by the API routers.

Per-request objects (store, resolver) wrap the request's database session;
startup-built tables are read from ``app.state``.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from namaste_bridge.config import settings
from namaste_bridge.db.session import get_db
from namaste_bridge.services.biomedical_index import Tm2BiomedicalIndex
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.icd11_client import ICD11Client
from namaste_bridge.services.resolver import MappingResolver


def get_store(db: AsyncSession = Depends(get_db)) -> ConceptStore:
    return ConceptStore(db, timeout=settings.store_timeout_seconds)


def get_resolver(request: Request, store: ConceptStore = Depends(get_store)) -> MappingResolver:
    return MappingResolver(
        store,
        request.app.state.fallback_table,
        prefilter_limit=settings.heuristic_prefilter_limit,
    )


def get_biomedical_index(request: Request) -> Tm2BiomedicalIndex:
    return request.app.state.biomedical_index


def get_icd11_client(request: Request) -> ICD11Client:
    return request.app.state.icd11_client
