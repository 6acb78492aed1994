import pytest

from src.housekeeper.content.content_sources import COMMENTS, POST_CASCADE, POSTS
from src.housekeeper.exceptions import DatabaseOperationError
from src.housekeeper.media.cascade_delete import CascadeDeleter
from src.housekeeper.repositories.content_repository import ContentRepository
from src.housekeeper.repositories.media_object_repository import MediaObjectRepository
from tests.helpers.content import add_comment, add_post, embed, register_media


class RecordingContentRepository(ContentRepository):
    def __init__(self, session_factory, convention, events: list[str]) -> None:
        super().__init__(session_factory, convention)
        self.events = events

    def delete_children(self, source, parent_field, parent_id):
        self.events.append(f"delete_children:{source.name}")
        return super().delete_children(source, parent_field, parent_id)

    def delete(self, source, entity_id):
        self.events.append(f"delete:{source.name}")
        return super().delete(source, entity_id)


class RecordingBlobStore:
    def __init__(self, inner, events: list[str]) -> None:
        self.inner = inner
        self.events = events

    def put(self, key, data, content_type):
        return self.inner.put(key, data, content_type)

    def get(self, key):
        return self.inner.get(key)

    def delete(self, key):
        self.events.append(f"blob:{key}")
        self.inner.delete(key)


def _deleter(content_repo, media_repo, blob_store, convention) -> CascadeDeleter:
    return CascadeDeleter(
        spec=POST_CASCADE,
        content_repo=content_repo,
        media_repo=media_repo,
        blob_store=blob_store,
        convention=convention,
    )


def test_cascade_deletes_media_then_dependents_then_root(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    root_image = register_media(media_repo, convention, blob_store)
    first_comment_image = register_media(media_repo, convention, blob_store)
    second_comment_image = register_media(media_repo, convention, blob_store)
    post_id = add_post(session_factory, content=f"cover {embed(root_image)}")
    add_comment(session_factory, post_id=post_id, content=embed(first_comment_image))
    add_comment(session_factory, post_id=post_id, images=[second_comment_image.reference_url])

    events: list[str] = []
    content_repo = RecordingContentRepository(session_factory, convention, events)
    deleter = _deleter(content_repo, media_repo, RecordingBlobStore(blob_store, events), convention)

    report = deleter.delete_entity_cascade(post_id)

    assert report.root_found is True
    assert report.root_deleted is True
    assert report.media_deleted == 3
    assert report.dependents_deleted == 2
    assert report.errors == []
    blob_events = [event for event in events if event.startswith("blob:")]
    assert len(blob_events) == 3
    assert events[3:] == ["delete_children:comments", "delete:posts"]
    assert media_repo.list_all() == []
    assert content_repo.get(POSTS, post_id) is None
    assert content_repo.list_children(COMMENTS, "post_id", post_id) == []


def test_missing_root_is_a_no_op(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    survivor = register_media(media_repo, convention, blob_store)
    content_repo = ContentRepository(session_factory, convention)

    report = _deleter(content_repo, media_repo, blob_store, convention).delete_entity_cascade("missing")

    assert report.root_found is False
    assert report.root_deleted is False
    assert report.media_deleted == 0
    assert media_repo.find(survivor.id) is not None


def test_media_failure_is_recorded_and_cascade_continues(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    broken = register_media(media_repo, convention, blob_store)
    fine = register_media(media_repo, convention, blob_store)
    post_id = add_post(session_factory, content=f"{embed(broken)} {embed(fine)}")
    add_comment(session_factory, post_id=post_id, content="nice")
    blob_store.fail_on_delete.add(broken.object_key)
    content_repo = ContentRepository(session_factory, convention)

    report = _deleter(content_repo, media_repo, blob_store, convention).delete_entity_cascade(post_id)

    assert report.root_deleted is True
    assert report.dependents_deleted == 1
    assert report.media_deleted == 1
    assert len(report.errors) == 1
    assert broken.object_key in report.errors[0]
    assert media_repo.find(broken.id) is not None
    assert media_repo.find(fine.id) is None


def test_dependent_failure_keeps_root(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    post_id = add_post(session_factory, content="text")
    add_comment(session_factory, post_id=post_id, content="reply")

    class FailingChildren(ContentRepository):
        def delete_children(self, source, parent_field, parent_id):
            raise DatabaseOperationError("comments: database operation failed")

    content_repo = FailingChildren(session_factory, convention)

    with pytest.raises(DatabaseOperationError):
        _deleter(content_repo, media_repo, blob_store, convention).delete_entity_cascade(post_id)

    assert content_repo.get(POSTS, post_id) is not None


def test_associated_media_removed_after_root(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    post_id = add_post(session_factory, content="no embeds")
    attached = register_media(media_repo, convention, blob_store, associated_entity_id=post_id)
    unrelated = register_media(media_repo, convention, blob_store)
    content_repo = ContentRepository(session_factory, convention)

    report = _deleter(content_repo, media_repo, blob_store, convention).delete_entity_cascade(post_id)

    assert report.media_deleted == 1
    assert media_repo.find(attached.id) is None
    assert media_repo.find(unrelated.id) is not None


def test_dangling_embeds_are_skipped(session_factory, convention, blob_store) -> None:
    media_repo = MediaObjectRepository(session_factory)
    post_id = add_post(session_factory, content="![x](/media/images/ghost/temp/missing.png)")
    content_repo = ContentRepository(session_factory, convention)

    report = _deleter(content_repo, media_repo, blob_store, convention).delete_entity_cascade(post_id)

    assert report.root_deleted is True
    assert report.media_deleted == 0
    assert report.errors == []
    assert blob_store.deleted == []
