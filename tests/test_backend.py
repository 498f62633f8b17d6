"""
Contratos request/response con el backend (httpx.MockTransport, sin red).
"""
import base64
import json

import httpx
import pytest

from voice_assistant.backend import BackendClient
from voice_assistant.config import BackendConfig
from voice_assistant.errors import (
    ConversationFailed,
    EmptyTranscript,
    SynthesisFailed,
    TranscriptionFailed,
)
from voice_assistant.llm.converse import serialize_history
from voice_assistant.state import Message, Sender

BASE_URL = "http://backend.test/api"


def make_client(handler):
    return BackendClient(BackendConfig(base_url=BASE_URL), transport=httpx.MockTransport(handler))


class TestTranscribe:
    @pytest.mark.asyncio
    async def test_posts_audio_as_multipart(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.content
            seen["type"] = request.headers["content-type"]
            return httpx.Response(200, json={"text": "  hola mundo "})

        async with make_client(handler) as client:
            text = await client.transcribe(b"RIFFDATA")

        assert text == "hola mundo"
        assert seen["url"] == f"{BASE_URL}/speech-to-text"
        assert seen["type"].startswith("multipart/form-data")
        assert b'name="audio"' in seen["body"]
        assert b"RIFFDATA" in seen["body"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"text": ""}, {"text": "   "}, {}, {"text": None}])
    async def test_empty_result_is_failure(self, payload):
        async with make_client(lambda r: httpx.Response(200, json=payload)) as client:
            with pytest.raises(EmptyTranscript):
                await client.transcribe(b"x")

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with make_client(lambda r: httpx.Response(500, json={"error": "x"})) as client:
            with pytest.raises(TranscriptionFailed) as exc_info:
                await client.transcribe(b"x")
        assert exc_info.value.status_code == 500
        assert not isinstance(exc_info.value, EmptyTranscript)

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TranscriptionFailed):
                await client.transcribe(b"x")


class TestConverse:
    def test_serialize_history_roles_and_order(self):
        history = [
            Message(Sender.USER, "Hello"),
            Message(Sender.ASSISTANT, "Hi there!"),
            Message(Sender.USER, "How are you?"),
        ]
        assert serialize_history(history) == [
            {"role": "user", "parts": [{"text": "Hello"}]},
            {"role": "model", "parts": [{"text": "Hi there!"}]},
            {"role": "user", "parts": [{"text": "How are you?"}]},
        ]

    def test_serialize_history_merges_same_sender(self):
        history = [
            Message(Sender.USER, "Hello"),
            Message(Sender.ASSISTANT, "OK"),
            Message(Sender.ASSISTANT, "sin audio"),
        ]
        turns = serialize_history(history)
        assert len(turns) == 2
        assert turns[1] == {"role": "model", "parts": [{"text": "OK"}, {"text": "sin audio"}]}

    @pytest.mark.asyncio
    async def test_sends_history_and_prompt_separately(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={"message": "Fine."})

        history = (Message(Sender.USER, "Hello"), Message(Sender.ASSISTANT, "Hi there!"))
        async with make_client(handler) as client:
            reply = await client.converse(history, "How are you?")

        assert reply == "Fine."
        assert seen["url"] == f"{BASE_URL}/chat"
        assert seen["json"]["prompt"] == "How are you?"
        assert [t["parts"][0]["text"] for t in seen["json"]["history"]] == ["Hello", "Hi there!"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, json={"error": "Failed"}),
            httpx.Response(200, json={"nope": 1}),
            httpx.Response(200, content=b"not json"),
        ],
    )
    async def test_failures(self, response):
        async with make_client(lambda r: response) as client:
            with pytest.raises(ConversationFailed):
                await client.converse((), "hi")


class TestSynthesize:
    @pytest.mark.asyncio
    async def test_decodes_base64_audio(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, json={"audioContent": base64.b64encode(b"ID3mp3").decode()})

        async with make_client(handler) as client:
            audio = await client.synthesize("Hi there!")

        assert audio == b"ID3mp3"
        assert seen["json"] == {"text": "Hi there!"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, json={"error": "x"}),
            httpx.Response(200, json={}),
            httpx.Response(200, json={"audioContent": "***not base64***"}),
        ],
    )
    async def test_failures(self, response):
        async with make_client(lambda r: response) as client:
            with pytest.raises(SynthesisFailed):
                await client.synthesize("x")


class TestHealthcheck:
    @pytest.mark.asyncio
    async def test_ok(self):
        def handler(request):
            assert request.url.path == "/api/healthcheck"
            return httpx.Response(200, json={"message": "Server is healthy", "status": "OK"})

        async with make_client(handler) as client:
            assert await client.healthcheck() is True

    @pytest.mark.asyncio
    async def test_unreachable_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            assert await client.healthcheck() is False


class TestBackendConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("VOICE_ASSISTANT_API_URL", "http://example.test/api/")
        monkeypatch.setenv("VOICE_ASSISTANT_TIMEOUT", "12.5")

        config = BackendConfig.from_env()

        assert config.base_url == "http://example.test/api"
        assert config.timeout == 12.5

    def test_no_timeout_by_default(self, monkeypatch):
        monkeypatch.delenv("VOICE_ASSISTANT_TIMEOUT", raising=False)
        assert BackendConfig.from_env().timeout is None

    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("VOICE_ASSISTANT_API_URL", "http://env.test")
        assert BackendConfig.from_env("http://cli.test/api").base_url == "http://cli.test/api"
