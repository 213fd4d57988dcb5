"""
Upload storage - one directory per upload.

Architecture:
    data/
    ├── {upload_id}/
    │   ├── upload.json           # Upload record (status, child, user)
    │   ├── analysis.json         # Merged analysis, written on success
    │   └── extracted_text.txt    # Resolved OCR text
    └── _index.json               # Index of uploads

The pipeline only depends on the UploadRepository protocol; JsonUploadStore
is the file-backed implementation used by the CLI and tests.
"""

import fcntl
import json
import os
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from loguru import logger

from gradeai.config.constants import ANALYSIS_JSON, EXTRACTED_TEXT_FILE, UPLOAD_JSON, UPLOADS_INDEX
from gradeai.core.exceptions import SerializationError, UploadNotFoundError
from gradeai.core.models import NormalizedAnalysis, UploadRecord, UploadStatus, utc_now_iso


class UploadRepository(Protocol):
    """Persistence operations the analysis pipeline needs."""

    def fetch_upload(self, upload_id: str) -> UploadRecord:
        ...

    def update_upload_status(self, upload_id: str, status: UploadStatus, error_message: Optional[str] = None) -> None:
        ...

    def save_analysis_result(self, upload_id: str, analysis: NormalizedAnalysis, extracted_text: str) -> None:
        ...


def _write_json_atomic(file_path: Path, data: Dict[str, Any]) -> None:
    """Write to a temp file, then rename over the target."""
    temp_file = file_path.with_suffix('.tmp')
    with open(temp_file, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    temp_file.replace(file_path)  # Atomic on POSIX


def _load_json(file_path: Path) -> Optional[Dict[str, Any]]:
    if not file_path.exists():
        return None
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        raise SerializationError(f"Failed to load JSON from {file_path}: {e}") from e


class JsonUploadStore:
    """
    File-backed upload repository.

    Usage:
        store = JsonUploadStore(settings.data_dir)
        record = store.create_upload(UploadRecord(file_name="test.jpg"))
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.index_file = self.base_dir / UPLOADS_INDEX

    def _upload_dir(self, upload_id: str) -> Path:
        return self.base_dir / upload_id

    # ==================== UPLOAD RECORDS ====================

    def create_upload(self, record: UploadRecord) -> UploadRecord:
        """Persist a new upload and register it in the index."""
        upload_dir = self._upload_dir(record.upload_id)
        upload_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(upload_dir / UPLOAD_JSON, record.model_dump(mode='json', by_alias=True))
        self._update_index(record)
        logger.debug(f"Upload {record.upload_id} created")
        return record

    def exists(self, upload_id: str) -> bool:
        return (self._upload_dir(upload_id) / UPLOAD_JSON).exists()

    def fetch_upload(self, upload_id: str) -> UploadRecord:
        """
        Raises:
            UploadNotFoundError: no record for upload_id
            SerializationError: record is unreadable
        """
        data = _load_json(self._upload_dir(upload_id) / UPLOAD_JSON)
        if data is None:
            raise UploadNotFoundError(f"Upload not found: {upload_id}", {"upload_id": upload_id})
        try:
            return UploadRecord.model_validate(data)
        except Exception as e:
            raise SerializationError(f"Upload record validation failed: {e}", {"upload_id": upload_id}) from e

    def update_upload_status(self, upload_id: str, status: UploadStatus, error_message: Optional[str] = None) -> None:
        record = self.fetch_upload(upload_id)
        record.status = status
        record.error_message = error_message
        record.updated_at = utc_now_iso()
        _write_json_atomic(self._upload_dir(upload_id) / UPLOAD_JSON, record.model_dump(mode='json', by_alias=True))
        self._update_index(record)
        logger.info(f"Upload {upload_id}: {status.value}" + (f" ({error_message})" if error_message else ""))

    # ==================== ANALYSIS ====================

    def save_analysis_result(self, upload_id: str, analysis: NormalizedAnalysis, extracted_text: str) -> None:
        upload_dir = self._upload_dir(upload_id)
        if not upload_dir.exists():
            raise UploadNotFoundError(f"Upload not found: {upload_id}", {"upload_id": upload_id})

        _write_json_atomic(upload_dir / ANALYSIS_JSON, analysis.model_dump(mode='json', by_alias=True))
        with open(upload_dir / EXTRACTED_TEXT_FILE, 'w', encoding='utf-8') as f:
            f.write(extracted_text)

    def load_analysis(self, upload_id: str) -> Optional[NormalizedAnalysis]:
        data = _load_json(self._upload_dir(upload_id) / ANALYSIS_JSON)
        if data is None:
            return None
        try:
            return NormalizedAnalysis.model_validate(data)
        except Exception as e:
            raise SerializationError(f"Analysis validation failed: {e}", {"upload_id": upload_id}) from e

    def load_extracted_text(self, upload_id: str) -> Optional[str]:
        text_file = self._upload_dir(upload_id) / EXTRACTED_TEXT_FILE
        if not text_file.exists():
            return None
        return text_file.read_text(encoding='utf-8')

    # ==================== INDEX ====================

    def _update_index(self, record: UploadRecord) -> None:
        """Update the upload index under an exclusive file lock."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.base_dir / ".index.lock"

        lock_fd = os.open(str(lock_path), os.O_CREAT | os.O_WRONLY, 0o644)
        try:
            fcntl.flock(lock_fd, fcntl.LOCK_EX)
            try:
                index = _load_json(self.index_file) or {}
                index[record.upload_id] = {
                    'file_name': record.file_name,
                    'status': record.status.value,
                    'created_at': record.created_at,
                    'updated_at': record.updated_at,
                }
                _write_json_atomic(self.index_file, index)
            finally:
                fcntl.flock(lock_fd, fcntl.LOCK_UN)
        finally:
            os.close(lock_fd)

    def list_uploads(self) -> List[str]:
        """Upload ids, oldest first."""
        index = _load_json(self.index_file) or {}
        return sorted(index, key=lambda upload_id: index[upload_id].get('created_at', ''))

    # ==================== CLEANUP ====================

    def delete(self, upload_id: str) -> bool:
        upload_dir = self._upload_dir(upload_id)
        if not upload_dir.exists():
            return False
        shutil.rmtree(upload_dir)
        return True
