"""
Fakes compartidos: backend, stream de micrófono y reproductor.
Nada aquí toca PortAudio, ffplay ni la red.
"""
import asyncio

import numpy as np
import pytest

from voice_assistant.audio.mic import CaptureSession
from voice_assistant.audio.playback import PlaybackSlot
from voice_assistant.errors import PermissionDenied


async def settle(rounds: int = 10) -> None:
    """Deja correr las tareas pendientes del loop."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeStream:
    """Sustituto de MicStream con la misma interfaz."""

    def __init__(self, sink, device=None, *, deny=False, log=None):
        self.sink = sink
        self.device = device
        self.deny = deny
        self.log = log if log is not None else []
        self.taps = []
        self.opened = False
        self.closed = False
        self.close_calls = 0

    @property
    def active(self):
        return self.opened and not self.closed

    def open(self, loop):
        if self.deny:
            raise PermissionDenied("Permission denied by user")
        self.opened = True
        self.log.append("capture-start")

    def dispatch(self, chunk):
        self.sink(chunk)
        for tap in list(self.taps):
            tap(chunk)

    def feed(self, *values):
        self.dispatch(np.asarray(values, dtype=np.int16))

    def add_tap(self, tap):
        self.taps.append(tap)

    def remove_tap(self, tap):
        if tap in self.taps:
            self.taps.remove(tap)

    def close(self):
        self.close_calls += 1
        if not self.closed and self.opened:
            self.log.append("capture-release")
        self.closed = True
        self.taps.clear()


class FakeHandle:
    """Audio "sonando" hasta finish() (final natural) o stop()."""

    def __init__(self, payload, log):
        self.payload = payload
        self.log = log
        self.stop_calls = 0
        self._done = asyncio.Event()

    @property
    def stopped(self):
        return self._done.is_set()

    async def wait(self):
        await self._done.wait()
        return 0

    def finish(self):
        self._done.set()

    def stop(self):
        self.stop_calls += 1
        if not self._done.is_set():
            self.log.append(f"playback-stop:{self.payload!r}")
        self._done.set()


class FakePlayer:
    """
    gate: asyncio.Event que retiene el arranque (como el spawn de ffplay).
    error: excepción que se lanza al abrir, tras el gate.
    """

    def __init__(self, log):
        self.log = log
        self.handles = []
        self.gate = None
        self.error = None

    async def __call__(self, payload):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        handle = FakeHandle(payload, self.log)
        self.handles.append(handle)
        self.log.append(f"playback-start:{payload!r}")
        return handle


class FakeBackend:
    """
    Backend en memoria. Cada operación devuelve el valor configurado o lanza
    la excepción configurada; las llamadas quedan registradas.
    """

    def __init__(self, log=None):
        self.log = log if log is not None else []
        self.transcribe_result = "hola"
        self.converse_results = []
        self.converse_default = "Hi there!"
        self.synthesize_result = b"P"
        self.transcribe_calls = []
        self.converse_calls = []
        self.synthesize_calls = []
        self.gate = None  # asyncio.Event para retener converse en vuelo

    async def transcribe(self, audio):
        self.transcribe_calls.append(audio)
        self.log.append("transcribe")
        if isinstance(self.transcribe_result, Exception):
            raise self.transcribe_result
        return self.transcribe_result

    async def converse(self, history, prompt):
        self.converse_calls.append((tuple(history), prompt))
        self.log.append(f"converse:{prompt}")
        if self.gate is not None:
            await self.gate.wait()
        result = self.converse_results.pop(0) if self.converse_results else self.converse_default
        if isinstance(result, Exception):
            raise result
        return result

    async def synthesize(self, text):
        self.synthesize_calls.append(text)
        self.log.append(f"synthesize:{text}")
        if isinstance(self.synthesize_result, Exception):
            raise self.synthesize_result
        return self.synthesize_result


@pytest.fixture
def event_log():
    return []


@pytest.fixture
def backend(event_log):
    return FakeBackend(event_log)


@pytest.fixture
def player(event_log):
    return FakePlayer(event_log)


@pytest.fixture
def streams():
    return []


@pytest.fixture
def make_capture(streams, event_log):
    """Factory de CaptureSession con FakeStream; deny=True simula permiso denegado."""

    def factory(deny=False):
        def stream_factory(sink, device=None):
            stream = FakeStream(sink, device, deny=deny, log=event_log)
            streams.append(stream)
            return stream

        return CaptureSession(stream_factory=stream_factory)

    return factory


@pytest.fixture
def slot(player):
    return PlaybackSlot(player=player)
