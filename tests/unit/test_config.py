import pytest
from sqlalchemy import text

from src.housekeeper.config import HousekeeperSettings, load_config
from src.housekeeper.content.content_sources import COMMENTS, POSTS, resolve_sources
from src.housekeeper.media.blob_store import LocalBlobStore, build_blob_store


def test_settings_read_prefixed_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("HOUSEKEEPER_SCHEDULER_TICK_SECONDS", "5")
    monkeypatch.setenv("HOUSEKEEPER_SCAN_SOURCES", '["posts", "comments"]')
    monkeypatch.setenv("HOUSEKEEPER_MEDIA_ROOT", str(tmp_path / "blobs"))

    settings = HousekeeperSettings()

    assert settings.scheduler_tick_seconds == 5
    assert settings.scan_sources == ["posts", "comments"]
    assert settings.inactive_user_days == 15
    assert isinstance(build_blob_store(settings), LocalBlobStore)


def test_load_config_creates_schema_and_media_root(tmp_path) -> None:
    settings = HousekeeperSettings(database_url="sqlite:///:memory:", media_root=tmp_path / "media")

    config = load_config(settings)

    assert (tmp_path / "media").is_dir()
    with config.session_factory() as session:
        assert session.execute(text("SELECT COUNT(*) FROM scheduled_task")).scalar() == 0


def test_resolve_sources_validates_names() -> None:
    assert resolve_sources(["posts", "comments", "posts"]) == [POSTS, COMMENTS]
    with pytest.raises(ValueError):
        resolve_sources(["posts", "attachments"])
