# ABOUTME: Tests for the result database merge rule and its JSON persistence
# ABOUTME: Covers upgrades, exclusion bookkeeping, sorted output and atomic writes

import json
import os

import pytest

from acs_database.core.models import AcsRecord, DetectionMethod, NameRecord
from acs_database.extraction.base import PersistenceError
from acs_database.persistence.store import (
    BACKLINKS_FILE,
    DATABASE_FILE,
    EXCLUDED_FILE,
    NAMES_FILE,
    MergeResult,
    ResultDatabase,
    sort_records,
)


def make_record(identifier: str, method: DetectionMethod, contain: str = "safe", actual_number: str = "") -> AcsRecord:
    return AcsRecord(
        identifier=identifier,
        actual_number=actual_number,
        url=f"https://scp-wiki.wikidot.com/{identifier}",
        scraper="ACS Bar" if method is DetectionMethod.STRUCTURED else "Text Fallback",
        method=method,
        contain=contain,
    )


class TestMerge:
    def test_insert(self):
        database = ResultDatabase(excluded={"scp-173"})

        result = database.merge(make_record("scp-173", DetectionMethod.FALLBACK))

        assert result is MergeResult.INSERTED
        assert "scp-173" in database
        assert "scp-173" not in database.excluded

    def test_structured_upgrades_fallback(self):
        database = ResultDatabase()
        database.merge(make_record("scp-173", DetectionMethod.FALLBACK, contain="keter"))

        result = database.merge(make_record("scp-173", DetectionMethod.STRUCTURED, contain="euclid"))

        assert result is MergeResult.UPGRADED
        assert database.get("scp-173").contain == "euclid"
        assert database.get("scp-173").method is DetectionMethod.STRUCTURED

    def test_fallback_never_downgrades_structured(self):
        database = ResultDatabase()
        database.merge(make_record("scp-173", DetectionMethod.STRUCTURED, contain="euclid"))

        result = database.merge(make_record("scp-173", DetectionMethod.FALLBACK, contain="keter"))

        assert result is MergeResult.KEPT
        assert database.get("scp-173").contain == "euclid"

    def test_equal_strength_keeps_first(self):
        database = ResultDatabase()
        database.merge(make_record("scp-173", DetectionMethod.STRUCTURED, contain="euclid"))

        result = database.merge(make_record("scp-173", DetectionMethod.STRUCTURED, contain="safe"))

        assert result is MergeResult.KEPT
        assert database.get("scp-173").contain == "euclid"

    def test_exclude_ignores_classified_pages(self):
        database = ResultDatabase(records={"scp-173": make_record("scp-173", DetectionMethod.STRUCTURED)})

        database.exclude("scp-173")
        database.exclude("scp-4000")

        assert database.excluded == {"scp-4000"}
        assert database.known_identifiers() == {"scp-173", "scp-4000"}


class TestPersistence:
    def test_load_missing_directory_is_empty(self, tmp_path):
        database = ResultDatabase.load(tmp_path / "nothing-here")

        assert len(database) == 0
        assert database.names == {}
        assert database.backlinks == {}
        assert database.excluded == set()

    def test_save_and_load(self, tmp_path):
        database = ResultDatabase(
            records={"scp-173": make_record("scp-173", DetectionMethod.STRUCTURED, actual_number="SCP-173")},
            excluded={"scp-4000"},
            names={
                "scp-173": NameRecord(
                    identifier="scp-173", actual_number="SCP-173", name="The Sculpture", url="https://x/scp-173"
                )
            },
            backlinks={"acs-bar": {"scp-173", "scp-5000"}},
        )

        written = database.save(tmp_path)
        loaded = ResultDatabase.load(tmp_path)

        assert {path.name for path in written} == {DATABASE_FILE, NAMES_FILE, BACKLINKS_FILE, EXCLUDED_FILE}
        assert loaded.get("scp-173") == database.get("scp-173")
        assert loaded.excluded == {"scp-4000"}
        assert loaded.names["scp-173"].name == "The Sculpture"
        assert loaded.backlinks == {"acs-bar": {"scp-173", "scp-5000"}}

    def test_records_written_in_number_order(self, tmp_path):
        database = ResultDatabase()
        for identifier, number in (("scp-1000", "SCP-1000"), ("scp-002", "SCP-002"), ("scp-173", "SCP-173")):
            database.merge(make_record(identifier, DetectionMethod.STRUCTURED, actual_number=number))

        database.save_records(tmp_path)

        written = json.loads((tmp_path / DATABASE_FILE).read_text())
        assert list(written) == ["scp-002", "scp-173", "scp-1000"]

    def test_backlinks_written_as_sorted_lists(self, tmp_path):
        database = ResultDatabase(backlinks={"flops-header": {"scp-1000", "scp-050"}, "acs-bar": {"scp-002"}})

        database.save_backlinks(tmp_path)

        written = json.loads((tmp_path / BACKLINKS_FILE).read_text())
        assert written == {"acs-bar": ["scp-002"], "flops-header": ["scp-050", "scp-1000"]}

    def test_corrupt_file_raises(self, tmp_path):
        (tmp_path / DATABASE_FILE).write_text("{not json")

        with pytest.raises(PersistenceError):
            ResultDatabase.load(tmp_path)

    def test_failed_write_keeps_previous_file(self, tmp_path, monkeypatch):
        database = ResultDatabase()
        database.merge(make_record("scp-173", DetectionMethod.STRUCTURED))
        database.save_records(tmp_path)
        before = (tmp_path / DATABASE_FILE).read_text()

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        database.merge(make_record("scp-049", DetectionMethod.STRUCTURED))

        with pytest.raises(PersistenceError):
            database.save_records(tmp_path)

        assert (tmp_path / DATABASE_FILE).read_text() == before
        assert [path.name for path in tmp_path.iterdir()] == [DATABASE_FILE]


class TestSortRecords:
    def test_sorts_object_by_field(self, tmp_path):
        path = tmp_path / "data.json"
        path.write_text(
            json.dumps(
                {
                    "scp-1000": {"actual_number": "SCP-1000"},
                    "taboo": {"actual_number": ""},
                    "scp-002": {"actual_number": "SCP-002"},
                }
            )
        )

        assert sort_records(path) == 3
        assert list(json.loads(path.read_text())) == ["scp-002", "scp-1000", "taboo"]

    def test_sorts_list_of_identifiers(self, tmp_path):
        path = tmp_path / "excluded.json"
        path.write_text(json.dumps(["scp-1000", "scp-050", "scp-2"]))

        sort_records(path)

        assert json.loads(path.read_text()) == ["scp-2", "scp-050", "scp-1000"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            sort_records(tmp_path / "absent.json")
