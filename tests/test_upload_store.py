"""
Tests for the file-backed upload store.
"""

import json

import pytest

from gradeai.core.exceptions import SerializationError, UploadNotFoundError
from gradeai.core.models import StudentProfile, UploadRecord, UploadStatus
from gradeai.storage.upload_store import JsonUploadStore

from conftest import make_analysis


@pytest.fixture
def store(tmp_path):
    return JsonUploadStore(str(tmp_path / "uploads"))


def test_create_and_fetch(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg", child=StudentProfile(name="Mia")))

    fetched = store.fetch_upload(record.upload_id)

    assert fetched.file_name == "test.jpg"
    assert fetched.child.name == "Mia"
    assert fetched.status == UploadStatus.PENDING
    assert store.exists(record.upload_id)


def test_records_are_stored_with_camel_case_keys(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg"))

    raw = json.loads((store.base_dir / record.upload_id / "upload.json").read_text(encoding="utf-8"))

    assert "fileName" in raw and "uploadId" in raw


def test_fetch_missing(store):
    with pytest.raises(UploadNotFoundError):
        store.fetch_upload("nope")


def test_status_updates(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg"))

    store.update_upload_status(record.upload_id, UploadStatus.FAILED, "Analysis failed")

    fetched = store.fetch_upload(record.upload_id)
    assert fetched.status == UploadStatus.FAILED
    assert fetched.error_message == "Analysis failed"
    index = json.loads(store.index_file.read_text(encoding="utf-8"))
    assert index[record.upload_id]["status"] == "failed"


def test_save_and_load_analysis(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg"))
    analysis = make_analysis(grade="3+", strengths=["Sorgfältig"])

    store.save_analysis_result(record.upload_id, analysis, "Klassenarbeit Nr. 1")

    loaded = store.load_analysis(record.upload_id)
    assert loaded.summary.overall_grade == "3+"
    assert loaded.strengths == ["Sorgfältig"]
    assert store.load_extracted_text(record.upload_id) == "Klassenarbeit Nr. 1"


def test_save_for_missing_upload(store):
    with pytest.raises(UploadNotFoundError):
        store.save_analysis_result("nope", make_analysis(), "")


def test_nothing_saved_yet(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg"))

    assert store.load_analysis(record.upload_id) is None
    assert store.load_extracted_text(record.upload_id) is None


def test_corrupt_record(store):
    record = store.create_upload(UploadRecord(file_name="test.jpg"))
    (store.base_dir / record.upload_id / "upload.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(SerializationError):
        store.fetch_upload(record.upload_id)


def test_list_and_delete(store):
    first = store.create_upload(UploadRecord(file_name="a.jpg", created_at="2024-01-01T00:00:00+00:00"))
    second = store.create_upload(UploadRecord(file_name="b.jpg", created_at="2024-02-01T00:00:00+00:00"))

    assert store.list_uploads() == [first.upload_id, second.upload_id]
    assert store.delete(first.upload_id)
    assert not store.exists(first.upload_id)
    assert not store.delete(first.upload_id)
