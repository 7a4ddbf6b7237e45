"""
ICD-11 TM2 to ICD-11 biomedical mapping index.

Built once from a CSV at startup and shared read-only.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Union

import pandas as pd
from loguru import logger

from namaste_bridge.schema import BiomedicalMapping

DEFAULT_BIOMEDICAL_CONFIDENCE = 0.8
REQUIRED_COLUMNS = ["icd11_tm2_code", "icd11_biomed_code"]


def _text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def _confidence(value) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_BIOMEDICAL_CONFIDENCE
    if pd.isna(confidence) or not 0.0 < confidence <= 1.0:
        return DEFAULT_BIOMEDICAL_CONFIDENCE
    return confidence


class Tm2BiomedicalIndex:
    """Immutable TM2 code -> biomedical mapping lookup."""

    def __init__(self, mappings: Mapping[str, BiomedicalMapping]):
        self._mappings = MappingProxyType(dict(mappings))

    @classmethod
    def empty(cls) -> "Tm2BiomedicalIndex":
        return cls({})

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "Tm2BiomedicalIndex":
        missing_columns = [col for col in REQUIRED_COLUMNS if col not in df.columns]
        if missing_columns:
            raise ValueError(f"Missing required columns: {missing_columns}")

        mappings = {}
        for _, row in df.iterrows():
            tm2_code = _text(row["icd11_tm2_code"])
            biomed_code = _text(row["icd11_biomed_code"])
            # Header repeats and TM2-only rows carry no biomedical counterpart
            if not tm2_code or not biomed_code or tm2_code == "icd11_tm2_code":
                continue
            mappings[tm2_code] = BiomedicalMapping(
                code=biomed_code,
                display=_text(row.get("icd11_biomed_display")),
                description=_text(row.get("icd11_biomed_description")),
                confidence=_confidence(row.get("confidence")),
            )
        return cls(mappings)

    @classmethod
    def from_csv(cls, csv_path: Union[str, Path, None]) -> "Tm2BiomedicalIndex":
        """
        Load the index from a CSV file.

        A missing path yields an empty index; a malformed file raises.
        """
        if not csv_path:
            return cls.empty()
        csv_path = Path(csv_path)
        if not csv_path.exists():
            logger.warning(f"TM2 biomedical mapping file not found: {csv_path}")
            return cls.empty()

        index = cls.from_dataframe(pd.read_csv(csv_path, dtype=str))
        logger.info(f"Loaded {len(index)} TM2 biomedical mappings from {csv_path}")
        return index

    def biomedical_for(self, tm2_code: Optional[str]) -> Optional[BiomedicalMapping]:
        if not tm2_code:
            return None
        return self._mappings.get(tm2_code)

    def __len__(self) -> int:
        return len(self._mappings)

    def __contains__(self, tm2_code: object) -> bool:
        return tm2_code in self._mappings
