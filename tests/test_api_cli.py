"""Dict-returning entry points and the command-line wrapper."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import COMPLETED, MERGED_PDF, InMemorySheet, StubMerger, form_name

from formmerge import get_merged_pdf_and_archive, list_new_forms
from formmerge.cli import parse_args, main


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


class TestListNewForms:
    def test_lists_oldest_first_in_local_time(self, store, settings):
        store.add("b", created_offset=10)
        store.add("a")
        local = settings.model_copy(update={"timezone": "America/New_York"})

        result = list_new_forms(store, local)

        assert result["ok"] is True
        assert result["count"] == 2
        assert result["files"][0] == {
            "id": "a",
            "name": "a.pdf",
            "size": len(store.contents["a"]),
            "created": "2025-10-30 14:19",
        }
        assert result["files"][1]["created"] == "2025-10-30 14:29"

    def test_empty_folder(self, store, settings):
        assert list_new_forms(store, settings) == {"ok": True, "files": [], "count": 0}

    def test_store_error_is_reported(self, store, settings, monkeypatch):
        def boom(folder_id):
            raise RuntimeError("drive quota exceeded")

        monkeypatch.setattr(store, "list_files", boom)
        assert list_new_forms(store, settings) == {"ok": False, "message": "drive quota exceeded"}


class TestGetMergedPdfAndArchive:
    def test_success_dict(self, store, tracking_sheet, stub_merger, settings):
        store.add("id1", form_name("100000000001"))
        result = get_merged_pdf_and_archive(["id1"], store, tracking_sheet, stub_merger, settings)
        assert result["ok"] is True
        assert result["archivedIds"] == ["id1"]
        assert result["printedFormIds"] == ["100000000001"]
        assert result["sheetUpdated"] is True
        assert result["outputName"] == "Merged_test.pdf"

    def test_unexpected_exception_becomes_failure(self, store, stub_merger, settings):
        class BrokenSheet(InMemorySheet):
            def headers(self):
                raise RuntimeError("sheets unavailable")

        store.add("id1")
        result = get_merged_pdf_and_archive(["id1"], store, BrokenSheet([]), stub_merger, settings)
        assert result == {"ok": False, "message": "sheets unavailable"}
        assert store.folder(COMPLETED) == ["id1"]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestParseArgs:
    def test_token_defaults_next_to_credentials(self):
        args = parse_args(["--credentials", "secrets/creds.json", "list"])
        assert args.token == Path("secrets/token.json")

    def test_merge_requires_ids_or_all(self):
        with pytest.raises(SystemExit):
            parse_args(["merge"])

    def test_merge_ids_in_order(self):
        args = parse_args(["merge", "b", "a", "--no-progress"])
        assert args.file_ids == ["b", "a"]
        assert args.no_progress is True

    def test_search_options(self):
        args = parse_args(["search", "--start", "2025-10-01", "--form-id", "100000000254"])
        assert args.start == "2025-10-01"
        assert args.form_id == "100000000254"


class ContextMerger(StubMerger):
    @classmethod
    def from_settings(cls, settings):
        return cls()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None


@pytest.fixture
def wired(monkeypatch, tmp_path, store, tracking_sheet):
    """Patch Google auth and services so ``main`` runs against the fakes."""
    for key, value in {
        "FORMMERGE_COMPLETED_FOLDER_ID": COMPLETED,
        "FORMMERGE_ARCHIVE_FOLDER_ID": "archive-folder",
        "FORMMERGE_MERGE_SERVICE_URL": "https://merge.example.com",
        "FORMMERGE_SOURCE_SHEET_ID": "sheet-id",
        "FORMMERGE_TIMEZONE": "UTC",
    }.items():
        monkeypatch.setenv(key, value)

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("formmerge.cli._setup_logging", lambda **kwargs: None)
    monkeypatch.setattr("formmerge.sources.authenticate", lambda credentials, token: object())
    monkeypatch.setattr("formmerge.sources.build_services", lambda creds: (None, None))
    monkeypatch.setattr("formmerge.sources.DriveDocumentStore", lambda service: store)
    monkeypatch.setattr("formmerge.sheets.open_sheet", lambda service, sid, name: tracking_sheet)
    monkeypatch.setattr("formmerge.merge_client.MergeServiceClient", ContextMerger)

    return ["--output-dir", str(tmp_path)]


class TestMain:
    def test_list(self, wired, store, capsys):
        store.add("a")
        main([*wired, "list"])
        out = json.loads(capsys.readouterr().out)
        assert out["count"] == 1
        assert out["files"][0]["created"] == "2025-10-30 18:19"

    def test_merge_writes_pdf(self, wired, store, tmp_path, capsys):
        store.add("id1", form_name("100000000001"))
        main([*wired, "merge", "id1", "--no-progress"])

        out = json.loads(capsys.readouterr().out)
        assert out["ok"] is True
        assert "base64" not in out
        assert (tmp_path / "Merged_test.pdf").read_bytes() == MERGED_PDF
        assert out["output"] == str(tmp_path / "Merged_test.pdf")

    def test_merge_all(self, wired, store, tmp_path, capsys):
        store.add("late", created_offset=5)
        store.add("early")
        target = tmp_path / "out" / "merged.pdf"

        main([*wired, "merge", "--all", "--output", str(target), "--no-progress"])

        out = json.loads(capsys.readouterr().out)
        assert out["archivedIds"] == ["early", "late"]
        assert target.read_bytes() == MERGED_PDF

    def test_failed_merge_exits_nonzero(self, wired, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([*wired, "merge", "unknown-id", "--no-progress"])
        assert excinfo.value.code == 1
        out = json.loads(capsys.readouterr().out)
        assert out == {"ok": False, "message": "No eligible files under size cap."}

    def test_search(self, wired, capsys):
        main([*wired, "search", "--last", "RAY"])
        out = json.loads(capsys.readouterr().out)
        assert [r["formId"] for r in out["rows"]] == ["100000000002"]

    def test_missing_settings_exit_2(self, wired, monkeypatch):
        monkeypatch.delenv("FORMMERGE_MERGE_SERVICE_URL")
        with pytest.raises(SystemExit) as excinfo:
            main([*wired, "list"])
        assert excinfo.value.code == 2

    def test_explicit_config_must_exist(self, wired, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            main([*wired, "--config", str(tmp_path / "absent.json"), "list"])
        assert excinfo.value.code == 2

    def test_default_config_file_is_read(self, wired, store, tmp_path, monkeypatch, capsys):
        monkeypatch.delenv("FORMMERGE_TIMEZONE")
        (tmp_path / "config.json").write_text(
            json.dumps({"timezone": "America/New_York"}), encoding="utf-8"
        )
        store.add("a")
        main([*wired, "list"])
        out = json.loads(capsys.readouterr().out)
        assert out["files"][0]["created"] == "2025-10-30 14:19"
