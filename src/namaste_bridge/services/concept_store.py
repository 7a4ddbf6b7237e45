"""
Concept store for the NAMASTE terminology bridge.

Read access to the source vocabulary, the target vocabularies and the curated
mapping table, plus the curation write path. Every query runs under an explicit
timeout; failures surface as ``StoreUnavailable``.
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from namaste_bridge.db.models import (
    Icd11Tm2Code,
    LoincCode,
    NamasteCode,
    SnomedCtCode,
    TerminologyMapping,
)
from namaste_bridge.errors import StoreUnavailable
from namaste_bridge.schema import (
    CodeSystem,
    Concept,
    CuratedMapping,
    MappingCreate,
    MappingStatus,
    TargetVocabulary,
    normalize_equivalence,
)

# vocabulary -> (model, display column, description column, active column, code system)
_TARGET_TABLES = {
    TargetVocabulary.ICD11: (Icd11Tm2Code, "display", "description", "is_active", CodeSystem.ICD11_TM2),
    TargetVocabulary.SNOMED_CT: (SnomedCtCode, "term", "description", "active", CodeSystem.SNOMED_CT),
    TargetVocabulary.LOINC: (LoincCode, "long_name", "component", "active", CodeSystem.LOINC),
}


def namaste_concept(row: NamasteCode) -> Concept:
    return Concept(
        system=CodeSystem.NAMASTE,
        code=row.code,
        display=row.display,
        description=row.description,
        category=row.category,
    )


def curated_mapping(row: TerminologyMapping) -> CuratedMapping:
    return CuratedMapping(
        id=row.id,
        ayush_code=row.ayush_code,
        ayush_term=row.ayush_term,
        icd11_code=row.icd11_code,
        icd11_term=row.icd11_term,
        snomed_ct_code=row.snomed_ct_code,
        snomed_ct_term=row.snomed_ct_term,
        semantic_tag=row.semantic_tag,
        loinc_code=row.loinc_code,
        loinc_term=row.loinc_term,
        mapping_confidence=row.mapping_confidence,
        equivalence=normalize_equivalence(row.equivalence),
        mapping_method=row.mapping_method,
        clinical_evidence=row.clinical_evidence,
        status=MappingStatus(row.status),
        cross_validated=bool(row.cross_validated),
        curator=row.curator,
    )


class ConceptStore:
    """Query layer over the terminology tables."""

    def __init__(self, db_session: AsyncSession, timeout: float = 5.0):
        self.db = db_session
        self.timeout = timeout

    async def _guard(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            await self._reset()
            raise StoreUnavailable(f"store query timed out after {self.timeout}s") from e
        except SQLAlchemyError as e:
            await self._reset()
            raise StoreUnavailable(f"store query failed: {e}") from e

    async def _reset(self):
        # A query cancelled mid-flight leaves the transaction invalid until rolled back
        try:
            await self.db.rollback()
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"store session rollback failed: {e}")

    async def _scalars(self, statement) -> List[Any]:
        result = await self._guard(self.db.execute(statement))
        return list(result.scalars().all())

    async def _scalar(self, statement) -> Any:
        result = await self._guard(self.db.execute(statement))
        return result.scalar_one_or_none()

    # Source vocabulary

    async def get_source_concept(self, code: str) -> Optional[Concept]:
        row = await self._scalar(
            select(NamasteCode).where(NamasteCode.code == code, NamasteCode.is_active.is_(True))
        )
        return namaste_concept(row) if row else None

    async def search_source_concepts(self, query: str, limit: int = 10) -> List[Concept]:
        """Case-insensitive substring search over NAMASTE code, display, description and category."""
        pattern = f"%{query}%"
        rows = await self._scalars(
            select(NamasteCode)
            .where(
                NamasteCode.is_active.is_(True),
                or_(
                    NamasteCode.code.ilike(pattern),
                    NamasteCode.display.ilike(pattern),
                    NamasteCode.description.ilike(pattern),
                    NamasteCode.category.ilike(pattern),
                ),
            )
            .order_by(NamasteCode.code)
            .limit(limit)
        )
        return [namaste_concept(row) for row in rows]

    async def search_source_by_keywords(self, keywords: Sequence[str], limit: int) -> List[Concept]:
        if not keywords:
            return []
        conditions = []
        for keyword in keywords:
            pattern = f"%{keyword}%"
            conditions.extend([NamasteCode.display.ilike(pattern), NamasteCode.description.ilike(pattern)])
        rows = await self._scalars(
            select(NamasteCode)
            .where(NamasteCode.is_active.is_(True), or_(*conditions))
            .order_by(NamasteCode.code)
            .limit(limit)
        )
        return [namaste_concept(row) for row in rows]

    async def list_source_concepts(self, offset: int = 0, limit: int = 100) -> List[Concept]:
        rows = await self._scalars(
            select(NamasteCode)
            .where(NamasteCode.is_active.is_(True))
            .order_by(NamasteCode.code)
            .offset(offset)
            .limit(limit)
        )
        return [namaste_concept(row) for row in rows]

    async def count_source_concepts(self) -> int:
        return await self._count(NamasteCode, NamasteCode.is_active.is_(True))

    # Target vocabularies

    def _target_concept(self, vocabulary: TargetVocabulary, row: Any) -> Concept:
        _, display_attr, description_attr, _, system = _TARGET_TABLES[vocabulary]
        return Concept(
            system=system,
            code=row.code,
            display=getattr(row, display_attr),
            description=getattr(row, description_attr),
            semantic_tag=getattr(row, "semantic_tag", None),
            equivalence=normalize_equivalence(row.equivalence) if vocabulary == TargetVocabulary.ICD11 else None,
        )

    async def search_target_concepts(
        self,
        vocabulary: TargetVocabulary,
        keywords: Sequence[str],
        limit: int,
    ) -> List[Concept]:
        """Active target rows whose display or description contains any keyword."""
        if not keywords:
            return []
        model, display_attr, description_attr, active_attr, _ = _TARGET_TABLES[vocabulary]
        display = getattr(model, display_attr)
        description = getattr(model, description_attr)

        conditions = []
        for keyword in keywords:
            pattern = f"%{keyword}%"
            conditions.extend([display.ilike(pattern), description.ilike(pattern)])

        rows = await self._scalars(
            select(model)
            .where(getattr(model, active_attr).is_(True), or_(*conditions))
            .order_by(model.code)
            .limit(limit)
        )
        return [self._target_concept(vocabulary, row) for row in rows]

    async def get_target_concepts(self, vocabulary: TargetVocabulary, codes: Sequence[str]) -> List[Concept]:
        if not codes:
            return []
        model, _, _, active_attr, _ = _TARGET_TABLES[vocabulary]
        rows = await self._scalars(
            select(model)
            .where(model.code.in_(list(codes)), getattr(model, active_attr).is_(True))
            .order_by(model.code)
        )
        return [self._target_concept(vocabulary, row) for row in rows]

    async def get_target_concept(self, vocabulary: TargetVocabulary, code: str) -> Optional[Concept]:
        model, _, _, _, _ = _TARGET_TABLES[vocabulary]
        row = await self._scalar(select(model).where(model.code == code))
        return self._target_concept(vocabulary, row) if row else None

    # Curated mappings

    async def approved_mappings(self, source_code: str) -> List[CuratedMapping]:
        """Approved mappings for a NAMASTE code, highest confidence first."""
        rows = await self._scalars(
            select(TerminologyMapping)
            .where(
                TerminologyMapping.ayush_code == source_code,
                TerminologyMapping.status == MappingStatus.APPROVED.value,
            )
            .order_by(TerminologyMapping.mapping_confidence.desc(), TerminologyMapping.id)
        )
        return [curated_mapping(row) for row in rows]

    async def approved_mappings_for_target(self, icd11_code: str) -> List[CuratedMapping]:
        rows = await self._scalars(
            select(TerminologyMapping)
            .where(
                TerminologyMapping.icd11_code == icd11_code,
                TerminologyMapping.status == MappingStatus.APPROVED.value,
            )
            .order_by(TerminologyMapping.mapping_confidence.desc(), TerminologyMapping.id)
        )
        return [curated_mapping(row) for row in rows]

    async def all_approved_mappings(self) -> List[CuratedMapping]:
        rows = await self._scalars(
            select(TerminologyMapping)
            .where(TerminologyMapping.status == MappingStatus.APPROVED.value)
            .order_by(TerminologyMapping.ayush_code, TerminologyMapping.id)
        )
        return [curated_mapping(row) for row in rows]

    async def list_mappings(
        self,
        status: Optional[MappingStatus] = MappingStatus.APPROVED,
        offset: int = 0,
        limit: int = 50,
    ) -> Tuple[List[CuratedMapping], int]:
        """Page through curated mappings, newest first. ``status=None`` lists every status."""
        query = select(TerminologyMapping)
        count_query = select(func.count(TerminologyMapping.id))
        if status is not None:
            query = query.where(TerminologyMapping.status == status.value)
            count_query = count_query.where(TerminologyMapping.status == status.value)

        rows = await self._scalars(
            query.order_by(TerminologyMapping.created_at.desc(), TerminologyMapping.id.desc())
            .offset(offset)
            .limit(limit)
        )
        total = await self._scalar(count_query)
        return [curated_mapping(row) for row in rows], total or 0

    async def upsert_mapping(self, data: MappingCreate) -> Tuple[CuratedMapping, bool]:
        """
        Create or update the mapping for (ayush_code, icd11_code).

        Missing terms are filled from the vocabulary tables when available.

        Returns:
            The stored mapping and whether a new row was created
        """
        existing = await self._scalar(
            select(TerminologyMapping).where(
                TerminologyMapping.ayush_code == data.ayush_code,
                TerminologyMapping.icd11_code == data.icd11_code,
            )
        )

        ayush_term = data.ayush_term
        if not ayush_term:
            source = await self.get_source_concept(data.ayush_code)
            ayush_term = source.display if source else data.ayush_code
        icd11_term = data.icd11_term
        if not icd11_term:
            target = await self.get_target_concept(TargetVocabulary.ICD11, data.icd11_code)
            icd11_term = target.display if target else data.icd11_code

        values = {
            "ayush_term": ayush_term,
            "icd11_term": icd11_term,
            "snomed_ct_code": data.snomed_ct_code,
            "snomed_ct_term": data.snomed_ct_term,
            "semantic_tag": data.semantic_tag,
            "loinc_code": data.loinc_code,
            "loinc_term": data.loinc_term,
            "mapping_confidence": data.confidence,
            "equivalence": data.equivalence.value,
            "mapping_method": data.mapping_method,
            "clinical_evidence": data.clinical_evidence,
            "status": data.status.value,
            "cross_validated": data.cross_validated,
            "curator": data.curator,
        }

        created = existing is None
        if created:
            row = TerminologyMapping(
                ayush_code=data.ayush_code,
                icd11_code=data.icd11_code,
                **values
            )
            self.db.add(row)
        else:
            row = existing
            for key, value in values.items():
                setattr(row, key, value)

        await self._guard(self.db.commit())
        await self._guard(self.db.refresh(row))
        return curated_mapping(row), created

    # Statistics

    async def _count(self, model, *conditions) -> int:
        return await self._scalar(select(func.count(model.id)).where(*conditions)) or 0

    async def count_statistics(self) -> Dict[str, int]:
        approved = TerminologyMapping.status == MappingStatus.APPROVED.value
        return {
            "namaste_codes_available": await self._count(NamasteCode, NamasteCode.is_active.is_(True)),
            "icd11_tm2_codes_available": await self._count(Icd11Tm2Code, Icd11Tm2Code.is_active.is_(True)),
            "snomed_ct_codes_available": await self._count(SnomedCtCode, SnomedCtCode.active.is_(True)),
            "loinc_codes_available": await self._count(LoincCode, LoincCode.active.is_(True)),
            "total_active_mappings": await self._count(TerminologyMapping, approved),
            "snomed_ct_mappings": await self._count(
                TerminologyMapping, approved, TerminologyMapping.snomed_ct_code.is_not(None)
            ),
            "loinc_mappings": await self._count(
                TerminologyMapping, approved, TerminologyMapping.loinc_code.is_not(None)
            ),
        }
