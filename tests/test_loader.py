"""
Tests for the terminology loader, the concept store and the TM2 biomedical index.
"""

import importlib.util
from pathlib import Path

import pandas as pd
import pytest

from namaste_bridge.schema import MappingStatus, TargetVocabulary
from namaste_bridge.services.biomedical_index import Tm2BiomedicalIndex
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.terminology_loader import TerminologyLoader

DATA_DIR = Path(__file__).parent.parent / "data"
INGEST_SCRIPT = Path(__file__).parent.parent / "scripts" / "ingest_terminology.py"


@pytest.fixture
def loader(db_session):
    return TerminologyLoader(db_session)


@pytest.fixture
def write_csv(tmp_path):
    def write(name, content):
        path = tmp_path / name
        path.write_text(content)
        return path
    return write


class TestTerminologyLoader:
    """Test CSV loading into the terminology tables."""

    async def test_load_namaste_codes(self, loader, db_session):
        result = await loader.load_namaste_codes(DATA_DIR / "namaste_codes.csv")

        assert result == {"loaded": 12, "skipped": 0, "total_processed": 12, "success": True}
        concept = await ConceptStore(db_session).get_source_concept("NAM009")
        assert concept.display == "Anidra"
        assert concept.category == "mental"

    async def test_reload_skips_existing_codes(self, loader):
        await loader.load_namaste_codes(DATA_DIR / "namaste_codes.csv")
        result = await loader.load_namaste_codes(DATA_DIR / "namaste_codes.csv")

        assert result["success"]
        assert result["loaded"] == 0
        assert result["skipped"] == 12

    async def test_duplicate_codes_in_one_file(self, loader, write_csv):
        path = write_csv("dupes.csv", "code,display\nNAM103,First\nNAM103,Second\n")

        result = await loader.load_namaste_codes(path)

        assert (result["loaded"], result["skipped"]) == (1, 1)

    async def test_rows_missing_required_values_are_dropped(self, loader, write_csv):
        path = write_csv("gaps.csv", "code,display\nNAM101,\nNAM102,Vamana\n")

        result = await loader.load_namaste_codes(path)

        assert result["loaded"] == 1
        assert result["total_processed"] == 1

    async def test_column_aliases(self, loader, db_session, write_csv):
        path = write_csv(
            "aliased.csv",
            "NAMASTE_Code,namaste_display,definition\nNAM100,Vamana,Therapeutic emesis\n",
        )

        result = await loader.load_namaste_codes(path)

        assert result["loaded"] == 1
        concept = await ConceptStore(db_session).get_source_concept("NAM100")
        assert concept.description == "Therapeutic emesis"

    async def test_missing_columns(self, loader, write_csv):
        path = write_csv("bad.csv", "code,category\nNAM100,digestive\n")

        result = await loader.load_namaste_codes(path)

        assert result["success"] is False
        assert "Missing required columns" in result["error"]

    async def test_missing_file(self, loader, tmp_path):
        result = await loader.load_snomed_ct_codes(tmp_path / "absent.csv")

        assert result["success"] is False
        assert result["loaded"] == 0

    async def test_load_tm2_codes_from_biomedical_export(self, loader, db_session):
        result = await loader.load_icd11_tm2_codes(DATA_DIR / "icd11_tm2_biomedical.csv")

        assert result["loaded"] == 4
        concept = await ConceptStore(db_session).get_target_concept(TargetVocabulary.ICD11, "SK25.0")
        assert concept.display == "Sleep disorder pattern"

    async def test_load_mappings(self, loader, db_session, write_csv):
        path = write_csv(
            "mappings.csv",
            "ayush_code,icd11_code,mapping_confidence,status\n"
            "NAM004,SM25.1,0.9,\n"
            "NAM005,SM25.2,abc,\n"
            "NAM006,SM27.0,0.7,pending\n",
        )

        result = await loader.load_mappings(path)

        assert result == {"loaded": 2, "skipped": 1, "total_processed": 3, "success": True}
        store = ConceptStore(db_session)
        [mapping] = await store.approved_mappings("NAM004")
        assert mapping.mapping_confidence == 0.9
        assert mapping.mapping_method == "csv_import"
        assert mapping.curator == "csv_import"
        assert mapping.ayush_term == "NAM004"
        pending, total = await store.list_mappings(status=MappingStatus.PENDING)
        assert total == 1
        assert pending[0].ayush_code == "NAM006"

    async def test_mapping_reload_updates_in_place(self, loader, db_session):
        await loader.load_mappings(DATA_DIR / "terminology_mappings.csv")
        result = await loader.load_mappings(DATA_DIR / "terminology_mappings.csv")

        assert result["loaded"] == 4
        _, total = await ConceptStore(db_session).list_mappings(status=None)
        assert total == 4

    async def test_ingest_directory(self, loader):
        results = await loader.ingest_directory(DATA_DIR)

        assert list(results) == [
            "namaste_codes.csv",
            "icd11_tm2_codes.csv",
            "snomed_ct_codes.csv",
            "loinc_codes.csv",
            "terminology_mappings.csv",
        ]
        assert [r["loaded"] for r in results.values()] == [12, 9, 7, 3, 4]
        assert all(r["success"] for r in results.values())

    async def test_ingest_skips_absent_files(self, loader, tmp_path):
        assert await loader.ingest_directory(tmp_path) == {}


class TestConceptStore:
    """Test concept store queries over the sample terminology."""

    @pytest.fixture
    async def store(self, loader, db_session):
        await loader.ingest_directory(DATA_DIR)
        return ConceptStore(db_session)

    async def test_search_source_concepts(self, store):
        concepts = await store.search_source_concepts("DIGESTIVE")
        assert [c.code for c in concepts] == ["NAM004", "NAM005"]

    async def test_search_source_by_keywords(self, store):
        concepts = await store.search_source_by_keywords(["pitta", "kapha"], limit=10)
        assert [c.code for c in concepts] == ["NAM002", "NAM003", "NAM005"]

    async def test_search_target_concepts(self, store):
        concepts = await store.search_target_concepts(TargetVocabulary.SNOMED_CT, ["insomnia", "fever"], 10)

        assert [c.code for c in concepts] == ["193462001", "386661006"]
        assert concepts[0].semantic_tag == "disorder"

    async def test_search_without_keywords(self, store):
        assert await store.search_target_concepts(TargetVocabulary.ICD11, [], 10) == []

    async def test_get_target_concepts(self, store):
        concepts = await store.get_target_concepts(TargetVocabulary.ICD11, ["SP90.1", "SK25.0", "NOPE"])
        assert [c.code for c in concepts] == ["SK25.0", "SP90.1"]

    async def test_loinc_concepts(self, store):
        concept = await store.get_target_concept(TargetVocabulary.LOINC, "2345-7")
        assert concept.display == "Glucose [Mass/volume] in Serum or Plasma"
        assert concept.description == "Glucose"

    async def test_approved_mappings_for_target(self, store):
        [mapping] = await store.approved_mappings_for_target("SM27.0")

        assert mapping.ayush_code == "NAM006"
        assert mapping.loinc_code == "2345-7"
        assert mapping.cross_validated is True

    async def test_count_statistics(self, store):
        counts = await store.count_statistics()

        assert counts["namaste_codes_available"] == 12
        assert counts["total_active_mappings"] == 4
        assert counts["loinc_mappings"] == 2
        assert await store.count_source_concepts() == 12


class TestTm2BiomedicalIndex:
    """Test the TM2 to biomedical lookup."""

    def test_from_csv(self):
        index = Tm2BiomedicalIndex.from_csv(DATA_DIR / "icd11_tm2_biomedical.csv")

        assert len(index) == 4
        assert "SK25.0" in index
        mapping = index.biomedical_for("SK25.0")
        assert mapping.code == "7A00"
        assert mapping.display == "Chronic insomnia"
        assert mapping.confidence == 0.85

    def test_unknown_code(self):
        index = Tm2BiomedicalIndex.from_csv(DATA_DIR / "icd11_tm2_biomedical.csv")

        assert index.biomedical_for("SS81.0") is None
        assert index.biomedical_for(None) is None

    def test_missing_file_gives_empty_index(self, tmp_path):
        assert len(Tm2BiomedicalIndex.from_csv(None)) == 0
        assert len(Tm2BiomedicalIndex.from_csv(tmp_path / "absent.csv")) == 0

    def test_from_dataframe_skips_unusable_rows(self):
        df = pd.DataFrame({
            "icd11_tm2_code": ["icd11_tm2_code", "SM25.1", "SM25.2", "SK25.0"],
            "icd11_biomed_code": ["icd11_biomed_code", "DA92.0", None, "7A00"],
            "confidence": ["confidence", "abc", "0.9", "1.5"],
        })

        index = Tm2BiomedicalIndex.from_dataframe(df)

        assert len(index) == 2
        assert "SM25.2" not in index
        assert index.biomedical_for("SM25.1").confidence == 0.8
        assert index.biomedical_for("SK25.0").confidence == 0.8

    def test_from_dataframe_requires_columns(self):
        with pytest.raises(ValueError):
            Tm2BiomedicalIndex.from_dataframe(pd.DataFrame({"icd11_tm2_code": ["SM25.1"]}))


class TestIngestScript:
    """Test the command-line ingestion entry point."""

    @pytest.fixture
    def script(self):
        spec = importlib.util.spec_from_file_location("ingest_terminology", INGEST_SCRIPT)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module

    async def test_ingests_data_directory(self, script, db_session):
        assert await script.main(DATA_DIR) is True

        counts = await ConceptStore(db_session).count_statistics()
        assert counts["snomed_ct_codes_available"] == 7

    async def test_reports_missing_or_empty_directory(self, script, db_session, tmp_path):
        assert await script.main(tmp_path / "absent") is False
        assert await script.main(tmp_path) is False

    async def test_reports_failed_loads(self, script, db_session, tmp_path):
        (tmp_path / "namaste_codes.csv").write_text("code,category\nNAM100,digestive\n")

        assert await script.main(tmp_path) is False
