"""
Terminology loader service.

Loads NAMASTE, ICD-11 TM2, SNOMED CT and LOINC concepts and curated mappings
from CSV files into the database.
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pandas as pd
from loguru import logger
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from namaste_bridge.db.models import Icd11Tm2Code, LoincCode, NamasteCode, SnomedCtCode
from namaste_bridge.errors import StoreUnavailable
from namaste_bridge.schema import MappingCreate, MappingStatus, normalize_equivalence
from namaste_bridge.services.concept_store import ConceptStore

CsvPath = Union[str, Path]

# Column names used by the upstream exports, mapped onto the loader's columns
COLUMN_ALIASES = {
    "namaste_code": "code",
    "namaste_display": "display",
    "namaste_description": "description",
    "definition": "description",
    "icd11_tm2_code": "code",
    "icd11_tm2_display": "display",
    "icd11_tm2_description": "description",
    "snomed_code": "code",
    "concept_id": "code",
    "loinc_num": "code",
    "mapping_confidence": "confidence",
}

# File name -> loader method used by ``ingest_directory``, in load order
DIRECTORY_LAYOUT = [
    ("namaste_codes.csv", "load_namaste_codes"),
    ("icd11_tm2_codes.csv", "load_icd11_tm2_codes"),
    ("snomed_ct_codes.csv", "load_snomed_ct_codes"),
    ("loinc_codes.csv", "load_loinc_codes"),
    ("terminology_mappings.csv", "load_mappings"),
]


def read_csv(csv_path: CsvPath, required_columns: List[str], aliases: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """
    Read a CSV, apply column aliases and check required columns.

    Missing cells come back as None rather than NaN.
    """
    df = pd.read_csv(csv_path, dtype=str)
    df.columns = [c.strip().lower() for c in df.columns]
    aliases = COLUMN_ALIASES if aliases is None else aliases
    df = df.rename(columns={k: v for k, v in aliases.items() if k in df.columns and v not in df.columns})

    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    df = df.dropna(subset=required_columns)
    return df.astype(object).where(pd.notna(df), None)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _failure(error: Exception) -> Dict[str, Any]:
    return {
        "loaded": 0,
        "skipped": 0,
        "total_processed": 0,
        "success": False,
        "error": str(error),
    }


class TerminologyLoader:
    """Service for loading terminology CSV files into the concept store."""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def _load_codes(
        self,
        csv_path: CsvPath,
        model,
        required_columns: List[str],
        build: Callable[[Dict[str, Any]], Any],
    ) -> Dict[str, Any]:
        """Insert rows whose code is not stored yet; existing codes are skipped."""
        try:
            df = read_csv(csv_path, required_columns)

            result = await self.db.execute(select(model.code))
            existing = set(result.scalars().all())

            loaded_count = 0
            skipped_count = 0
            for record in df.to_dict(orient="records"):
                code = _clean(record["code"])
                if not code or code in existing:
                    skipped_count += 1
                    continue
                record["code"] = code
                self.db.add(build(record))
                existing.add(code)
                loaded_count += 1

            await self.db.commit()

        except (OSError, ValueError, pd.errors.ParserError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.error(f"Failed to load {model.__tablename__} from {csv_path}: {e}")
            return _failure(e)

        logger.info(f"Loaded {loaded_count} {model.__tablename__} rows from {csv_path} ({skipped_count} skipped)")
        return {
            "loaded": loaded_count,
            "skipped": skipped_count,
            "total_processed": len(df),
            "success": True,
        }

    async def load_namaste_codes(self, csv_path: CsvPath) -> Dict[str, Any]:
        """
        Load NAMASTE concepts.

        Args:
            csv_path: CSV with ``code`` and ``display``; optional ``description``,
                ``category`` and ``ayush_system``

        Returns:
            Dictionary with loading statistics
        """
        return await self._load_codes(csv_path, NamasteCode, ["code", "display"], lambda r: NamasteCode(
            code=r["code"],
            display=_clean(r["display"]),
            description=_clean(r.get("description")),
            category=_clean(r.get("category")),
            ayush_system=_clean(r.get("ayush_system")) or "Ayurveda",
        ))

    async def load_icd11_tm2_codes(self, csv_path: CsvPath) -> Dict[str, Any]:
        return await self._load_codes(csv_path, Icd11Tm2Code, ["code", "display"], lambda r: Icd11Tm2Code(
            code=r["code"],
            display=_clean(r["display"]),
            description=_clean(r.get("description")),
            equivalence=normalize_equivalence(r.get("equivalence")).value,
        ))

    async def load_snomed_ct_codes(self, csv_path: CsvPath) -> Dict[str, Any]:
        return await self._load_codes(csv_path, SnomedCtCode, ["code", "term"], lambda r: SnomedCtCode(
            code=r["code"],
            term=_clean(r["term"]),
            description=_clean(r.get("description")),
            semantic_tag=_clean(r.get("semantic_tag")),
        ))

    async def load_loinc_codes(self, csv_path: CsvPath) -> Dict[str, Any]:
        return await self._load_codes(csv_path, LoincCode, ["code", "long_name"], lambda r: LoincCode(
            code=r["code"],
            long_name=_clean(r["long_name"]),
            short_name=_clean(r.get("short_name")),
            component=_clean(r.get("component")),
            loinc_property=_clean(r.get("property")),
            loinc_system=_clean(r.get("system")),
        ))

    async def load_mappings(self, csv_path: CsvPath, curator: str = "csv_import") -> Dict[str, Any]:
        """
        Upsert curated mappings on (ayush_code, icd11_code).

        Rows that fail validation are skipped; rows without a ``status`` are
        imported as approved.
        """
        try:
            df = read_csv(csv_path, ["ayush_code", "icd11_code", "confidence"])
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read mappings from {csv_path}: {e}")
            return _failure(e)

        store = ConceptStore(self.db)
        loaded_count = 0
        skipped_count = 0
        for record in df.to_dict(orient="records"):
            values = {k: _clean(v) for k, v in record.items() if _clean(v) is not None}
            values["equivalence"] = normalize_equivalence(values.get("equivalence")).value
            values.setdefault("status", MappingStatus.APPROVED.value)
            values.setdefault("mapping_method", "csv_import")
            values.setdefault("curator", curator)
            if "cross_validated" in values:
                values["cross_validated"] = values["cross_validated"].lower() in ("true", "1", "yes")
            try:
                await store.upsert_mapping(MappingCreate(**values))
            except ValidationError as e:
                logger.warning(f"Skipping invalid mapping {values.get('ayush_code')} -> {values.get('icd11_code')}: {e}")
                skipped_count += 1
                continue
            except StoreUnavailable as e:
                logger.error(f"Failed to store mappings from {csv_path}: {e}")
                return {**_failure(e), "loaded": loaded_count, "skipped": skipped_count}
            loaded_count += 1

        logger.info(f"Upserted {loaded_count} mappings from {csv_path} ({skipped_count} skipped)")
        return {
            "loaded": loaded_count,
            "skipped": skipped_count,
            "total_processed": len(df),
            "success": True,
        }

    async def ingest_directory(self, data_dir: CsvPath) -> Dict[str, Dict[str, Any]]:
        """Load every known terminology file present in ``data_dir``."""
        data_dir = Path(data_dir)
        results = {}
        for filename, method in DIRECTORY_LAYOUT:
            csv_path = data_dir / filename
            if not csv_path.exists():
                logger.debug(f"Skipping {filename}: not found in {data_dir}")
                continue
            results[filename] = await getattr(self, method)(csv_path)
        return results
