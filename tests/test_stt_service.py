import dataclasses
from unittest.mock import Mock

import pytest
import requests
from google.api_core import exceptions as gexc

from drivescribe import stt_service
from drivescribe.errors import AuthError, InputFormatError, RemoteError, TranscriptionFormatError


def _response(status=200, body=None, text=""):
    resp = Mock(status_code=status, text=text)
    if body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def no_sleep(monkeypatch):
    monkeypatch.setattr(stt_service.call_whisper.retry, "sleep", lambda seconds: None)


def test_openai_transcription(monkeypatch, settings):
    post = Mock(return_value=_response(body={"text": "hello world"}))
    monkeypatch.setattr(stt_service.requests, "post", post)

    assert stt_service.transcribe(b"abc", "voice.mp3", settings) == "hello world"

    args, kwargs = post.call_args
    assert args[0] == settings.transcription_url
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["files"]["file"] == ("voice.mp3", b"abc", "audio/mpeg")
    assert kwargs["data"] == {"model": "whisper-1"}


def test_language_hint_is_sent(monkeypatch, settings):
    post = Mock(return_value=_response(body={"text": "hallo"}))
    monkeypatch.setattr(stt_service.requests, "post", post)

    stt_service.transcribe(b"abc", "voice.mp3", dataclasses.replace(settings, transcription_language="nl"))

    assert post.call_args.kwargs["data"]["language"] == "nl"


def test_unauthorised_key_gives_remediation(monkeypatch, settings):
    body = {"error": {"message": "Incorrect API key provided"}}
    monkeypatch.setattr(stt_service.requests, "post", Mock(return_value=_response(401, body)))

    with pytest.raises(AuthError) as info:
        stt_service.transcribe(b"abc", "voice.mp3", settings)

    message = str(info.value)
    assert "Incorrect API key provided" in message
    assert "OPENAI_API_KEY" in message
    assert "https://platform.openai.com/account/api-keys" in message


def test_bad_audio_names_file(monkeypatch, settings):
    body = {"error": {"message": "Invalid file format."}}
    monkeypatch.setattr(stt_service.requests, "post", Mock(return_value=_response(400, body)))

    with pytest.raises(InputFormatError, match='"broken.mp3"') as info:
        stt_service.transcribe(b"abc", "broken.mp3", settings)
    assert info.value.file_name == "broken.mp3"


def test_server_error_is_remote_error(monkeypatch, settings):
    monkeypatch.setattr(stt_service.requests, "post", Mock(return_value=_response(503, text="unavailable")))

    with pytest.raises(RemoteError) as info:
        stt_service.transcribe(b"abc", "voice.mp3", settings)
    assert info.value.status == 503


def test_non_json_body(monkeypatch, settings):
    monkeypatch.setattr(stt_service.requests, "post", Mock(return_value=_response(200)))
    with pytest.raises(TranscriptionFormatError):
        stt_service.transcribe(b"abc", "voice.mp3", settings)


def test_connection_errors_are_retried(monkeypatch, settings, no_sleep):
    post = Mock(side_effect=[requests.ConnectionError("reset"), _response(body={"text": "ok"})])
    monkeypatch.setattr(stt_service.requests, "post", post)

    assert stt_service.transcribe(b"abc", "voice.mp3", settings) == "ok"
    assert post.call_count == 2


def test_gives_up_after_three_attempts(monkeypatch, settings, no_sleep):
    post = Mock(side_effect=requests.Timeout("slow"))
    monkeypatch.setattr(stt_service.requests, "post", post)

    with pytest.raises(RemoteError, match="unreachable"):
        stt_service.transcribe(b"abc", "voice.mp3", settings)
    assert post.call_count == 3


class FakeSpeechClient:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    def long_running_recognize(self, config=None, audio=None):
        self.calls.append((config, audio))
        if self.error:
            raise self.error
        op = Mock()
        op.result.return_value = Mock(_pb=self.result)
        return op


def _google(monkeypatch, client, as_dict=None):
    monkeypatch.setattr(stt_service.speech, "SpeechClient", lambda credentials=None: client)
    monkeypatch.setattr(stt_service, "MessageToDict", lambda pb: as_dict)


def test_google_backend_formats_speakers(monkeypatch, settings):
    settings = dataclasses.replace(settings, transcription_backend="google")
    response = {"results": [{"alternatives": [{"transcript": "hi", "words": [
        {"word": "hi", "startTime": "0s", "speakerTag": 1},
        {"word": "yes", "startTime": "2s", "speakerTag": 2},
    ]}]}]}
    client = FakeSpeechClient(result="pb")
    _google(monkeypatch, client, response)

    assert stt_service.transcribe(b"abc", "call.flac", settings) == "S1|0 hi\nS2 yes"
    config, audio = client.calls[0]
    assert config.encoding == stt_service.speech.RecognitionConfig.AudioEncoding.FLAC
    assert config.diarization_config.max_speaker_count == settings.diarisation_speakers
    assert audio.content == b"abc"


def test_google_backend_rejects_unknown_container(monkeypatch, settings):
    settings = dataclasses.replace(settings, transcription_backend="google")
    with pytest.raises(InputFormatError, match="memo.m4a"):
        stt_service.transcribe(b"abc", "memo.m4a", settings)


@pytest.mark.parametrize(
    "error, expected",
    [
        (gexc.Unauthenticated("bad token"), AuthError),
        (gexc.PermissionDenied("api disabled"), AuthError),
        (gexc.InvalidArgument("sample rate"), InputFormatError),
        (gexc.ServiceUnavailable("later"), RemoteError),
    ],
)
def test_google_backend_errors(monkeypatch, settings, error, expected):
    settings = dataclasses.replace(settings, transcription_backend="google")
    _google(monkeypatch, FakeSpeechClient(error=error))

    with pytest.raises(expected):
        stt_service.transcribe(b"abc", "call.wav", settings)
