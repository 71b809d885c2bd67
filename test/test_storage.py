"""
Attachment storage backends and upload helpers.
"""
from unittest import mock

import pytest
from botocore.exceptions import ClientError

import config
from core.exceptions import ValidationError
from storage.attachments import (
    AttachmentUpload, validate_uploads, attachment_filename, store_uploads, delete_attachments
)
from storage.local_storage import LocalStorage
from storage.s3_client import S3Storage


def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


def test_local_storage_roundtrip(tmp_path):
    store = LocalStorage(tmp_path)

    ref = store.save("complaint_attachments", "a.pdf", b"%PDF")

    assert ref == "complaint_attachments/a.pdf"
    assert store.exists(ref)
    assert store.url(ref) == "/uploads/complaint_attachments/a.pdf"
    assert store.delete(ref) is True
    assert store.delete(ref) is False


def test_local_storage_rejects_escaping_reference(tmp_path):
    store = LocalStorage(tmp_path / "root")

    with pytest.raises(ValueError):
        store.exists("../outside.txt")


def test_validate_uploads_reports_each_file():
    uploads = [
        AttachmentUpload("notes.docx", b"x", None),
        AttachmentUpload("virus.exe", b"x", None),
        AttachmentUpload("empty.pdf", b"", None),
    ]

    with pytest.raises(ValidationError) as exc_info:
        validate_uploads(uploads)

    errors = exc_info.value.errors
    assert set(errors) == {"attachments.1", "attachments.2"}
    assert errors["attachments.2"] == ["File size must be greater than 0"]


def test_validate_uploads_size_limit():
    too_big = b"x" * (config.MAX_ATTACHMENT_SIZE_KB * 1024 + 1)

    with pytest.raises(ValidationError) as exc_info:
        validate_uploads([AttachmentUpload("scan.png", too_big, "image/png")])

    assert exc_info.value.errors["attachments.0"] == [
        f"The file may not be greater than {config.MAX_ATTACHMENT_SIZE_KB} kilobytes."
    ]


def test_attachment_filename_is_random():
    first = attachment_filename("My Scan.JPG")
    second = attachment_filename("My Scan.JPG")

    assert first.endswith(".jpg")
    assert first != second


def test_delete_attachments_is_best_effort(storage):
    refs = store_uploads("complaint_attachments", [AttachmentUpload("a.pdf", b"1", None)])
    broken = mock.Mock()
    broken.delete.side_effect = [OSError("disk gone"), True]

    with mock.patch.object(config, "storage", broken):
        assert delete_attachments(["x.pdf", refs[0]]) == 1

    assert delete_attachments(refs) == 1
    assert delete_attachments([]) == 0


def test_store_uploads_removes_partial_batch(storage):
    saved = []
    real_save = storage.save

    def save_once(folder, filename, content, content_type=None):
        if saved:
            raise OSError("disk full")
        saved.append(real_save(folder, filename, content, content_type))
        return saved[-1]

    uploads = [AttachmentUpload("a.pdf", b"1", None), AttachmentUpload("b.pdf", b"2", None)]
    with mock.patch.object(storage, "save", side_effect=save_once):
        with pytest.raises(OSError):
            store_uploads("complaint_attachments", uploads)

    assert len(saved) == 1
    assert not storage.exists(saved[0])


def test_s3_storage_creates_missing_bucket():
    client = mock.Mock()
    client.head_bucket.side_effect = _client_error("404")

    S3Storage("complaints", client=client)

    client.create_bucket.assert_called_once_with(Bucket="complaints")


def test_s3_storage_save_and_exists():
    client = mock.Mock()
    store = S3Storage("complaints", region_name="ap-south-1", client=client)

    ref = store.save("response_attachments", "b.png", b"png", "image/png")

    assert ref == "response_attachments/b.png"
    args, kwargs = client.upload_fileobj.call_args
    assert args[1:] == ("complaints", ref)
    assert kwargs["ExtraArgs"] == {"ContentType": "image/png"}

    client.head_object.side_effect = _client_error("404")
    assert store.exists(ref) is False


def test_s3_storage_url_failure_returns_none():
    client = mock.Mock()
    client.generate_presigned_url.side_effect = _client_error("AccessDenied")
    store = S3Storage("complaints", client=client)

    assert store.url("complaint_attachments/a.pdf") is None
    assert store.url("") is None
