import json

import pytest

from drivescribe import cli, stt_service


@pytest.fixture
def wired(monkeypatch, settings, drive, docs):
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli.auth, "get_credentials", lambda s: None)
    monkeypatch.setattr(cli.auth, "get_drive_client", lambda s: drive)
    monkeypatch.setattr(cli.auth, "get_docs_client", lambda s: docs)


def test_run_prints_report(wired, monkeypatch, store, capsys):
    monkeypatch.setattr(stt_service, "transcribe", lambda audio, name, s, credentials=None: "hi")
    store.add_file("v1", "voice.mp3")

    assert cli.main(["run"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["processed"] == 1


def test_run_exit_status_on_failure(wired, store):
    store.add_file("v1", "voice.mp3")
    store.fail("get_media", "v1", 404)

    assert cli.main(["run"]) == 1


def test_check_creates_and_reads_back(wired, store):
    assert cli.main(["check", "--folder-id", "out"]) == 0

    (doc_id,) = store.docs
    assert store.doc_text(doc_id) == cli.CHECK_TEXT + "\n"
    assert store.files[doc_id]["parents"] == ["out"]


def test_check_reports_failure(wired, store):
    store.fail("create", "out", 403)
    store.fail("documents.create", "*", 403)

    assert cli.main(["check"]) == 1
