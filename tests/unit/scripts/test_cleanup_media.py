import importlib.util
import sys
from pathlib import Path

from src.housekeeper.media.orphan_collector import CollectionResult, CollectionSummary


PROJECT_ROOT = Path(__file__).resolve().parents[3]
MODULE_PATH = PROJECT_ROOT / "scripts" / "cleanup_media.py"
SPEC = importlib.util.spec_from_file_location("cleanup_media_module", MODULE_PATH)
cleanup_media = importlib.util.module_from_spec(SPEC)
assert SPEC and SPEC.loader
sys.modules["cleanup_media_module"] = cleanup_media
SPEC.loader.exec_module(cleanup_media)


class DummyCollector:
    def __init__(self, result: CollectionResult) -> None:
        self.result = result
        self.dry_runs: list[bool] = []
        self.temp_only: list[bool] = []

    def collect(self, *, dry_run: bool = False, temp_only: bool = False) -> CollectionResult:
        self.dry_runs.append(dry_run)
        self.temp_only.append(temp_only)
        self.result.dry_run = dry_run
        self.result.temp_only = temp_only
        return self.result


def _install(monkeypatch, result: CollectionResult) -> DummyCollector:
    collector = DummyCollector(result)
    monkeypatch.setattr(cleanup_media, "load_config", lambda: object())
    monkeypatch.setattr(cleanup_media, "build_orphan_collector", lambda config: collector)
    return collector


def test_perform_cleanup_dry_run(monkeypatch):
    summary = CollectionSummary(total_images=4, used_images=1, unused_images=3)
    collector = _install(monkeypatch, CollectionResult(True, "found 3 unused images (dry run)", summary))

    outcome = cleanup_media.perform_cleanup(dry_run=True)

    assert collector.dry_runs == [True]
    assert outcome.dry_run is True
    assert outcome.scanned == 4
    assert outcome.unused == 3
    assert outcome.deleted == 0


def test_main_prints_counts(monkeypatch, capsys):
    summary = CollectionSummary(total_images=2, used_images=0, unused_images=2, deleted_images=1, skipped_images=1)
    summary.errors.append("blob delete failed for images/u/temp/a.png")
    _install(monkeypatch, CollectionResult(True, "deleted 1 unused images", summary))

    exit_code = cleanup_media.main([])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert "deleted=1" in captured.out
    assert "skipped=1" in captured.out
    assert "images/u/temp/a.png" in captured.err


def test_main_reports_scan_failure(monkeypatch, capsys):
    summary = CollectionSummary(errors=["media scan failed: posts unavailable"])
    _install(monkeypatch, CollectionResult(False, "media scan failed: posts unavailable", summary))

    assert cleanup_media.main(["--dry-run"]) == 1
    assert "posts unavailable" in capsys.readouterr().err


def test_main_handles_errors(monkeypatch, capsys):
    monkeypatch.setattr(cleanup_media, "perform_cleanup", lambda **kwargs: (_ for _ in ()).throw(RuntimeError("boom")))

    exit_code = cleanup_media.main([])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "cleanup failed" in captured.err
    assert "boom" in captured.err


def test_main_passes_temp_only_flag(monkeypatch, capsys):
    summary = CollectionSummary(total_images=2, used_images=1, unused_images=1)
    collector = _install(monkeypatch, CollectionResult(True, "found 1 unused temporary images (dry run)", summary))

    exit_code = cleanup_media.main(["--dry-run", "--temp-only"])

    assert exit_code == 0
    assert collector.temp_only == [True]
    assert "cleanup temp-only dry-run" in capsys.readouterr().out
