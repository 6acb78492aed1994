import pytest

from src.housekeeper.exceptions import BlobStoreError, NotFoundError
from src.housekeeper.media.media_service import MediaService
from src.housekeeper.repositories.media_object_repository import MediaObjectRepository


def _service(session_factory, convention, blob_store) -> MediaService:
    return MediaService(
        media_repo=MediaObjectRepository(session_factory),
        blob_store=blob_store,
        convention=convention,
    )


def test_upload_registers_unconfirmed_temp_object(session_factory, convention, blob_store) -> None:
    service = _service(session_factory, convention, blob_store)

    media = service.upload(owner_id="user-1", filename="Photo.PNG", data=b"abc")

    assert media.object_key.startswith("images/user-1/temp/")
    assert media.object_key.endswith(".png")
    assert media.reference_url == f"/media/{media.object_key}"
    assert media.used_flag is False
    assert media.size_bytes == 3
    assert media.content_type == "image/png"
    assert blob_store.objects[media.object_key] == b"abc"
    assert service.read(media.object_key) == b"abc"


def test_mark_used_protects_object(session_factory, convention, blob_store) -> None:
    service = _service(session_factory, convention, blob_store)
    media = service.upload(owner_id="user-1", filename="a.jpg", data=b"x", scope_id="post-1")

    confirmed = service.mark_used(media.object_key, associated_entity_id="post-1")

    assert confirmed.used_flag is True
    assert confirmed.associated_entity_id == "post-1"
    assert confirmed.is_protected is True


def test_mark_used_unknown_key_raises(session_factory, convention, blob_store) -> None:
    service = _service(session_factory, convention, blob_store)

    with pytest.raises(NotFoundError):
        service.mark_used("images/nobody/temp/none.png")


def test_read_requires_registration(session_factory, convention, blob_store) -> None:
    service = _service(session_factory, convention, blob_store)
    blob_store.put("images/u/temp/stray.png", b"x", "image/png")

    with pytest.raises(BlobStoreError):
        service.read("images/u/temp/stray.png")
