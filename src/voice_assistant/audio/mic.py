"""
Entrada de audio: micrófono vía sounddevice.
MicStream (stream vivo con taps de solo lectura), CaptureSession y encode_wav.
"""
import asyncio
import io
import wave
from typing import Callable, Optional

import numpy as np

from ..config import CHANNELS, MIC_CHUNK_FRAMES, MIC_SAMPLE_RATE, SAMPLE_WIDTH_BYTES
from ..errors import PermissionDenied
from ..utils.logging import PIPELINE_LOGGER, log_mic

ChunkSink = Callable[[np.ndarray], None]


def list_audio_devices() -> None:
    """Imprime los dispositivos de audio disponibles."""
    import sounddevice as sd

    print("=== Dispositivos de audio disponibles ===")
    print(sd.query_devices())


def encode_wav(chunks: list[np.ndarray], sample_rate: int = MIC_SAMPLE_RATE) -> bytes:
    """Concatena los chunks int16 en orden de llegada y los empaqueta como WAV."""
    pcm = np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.int16)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(CHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH_BYTES)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.astype(np.int16).tobytes())
    return buffer.getvalue()


class MicStream:
    """
    Stream vivo del micrófono. Cada bloque va primero al sink del recorder y
    después a los taps de solo lectura (p. ej. el analizador del waveform).
    El callback de PortAudio corre en otro hilo; se reentra al loop con
    call_soon_threadsafe.
    """

    def __init__(self, sink: ChunkSink, device: int | None = None) -> None:
        self._sink = sink
        self._device = device
        self._taps: list[ChunkSink] = []
        self._stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def active(self) -> bool:
        return self._stream is not None

    def open(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Abre y arranca el InputStream (bloqueante: pensado para executor).
        Cualquier negativa del sistema o del dispositivo se reporta como PermissionDenied.
        """
        try:
            import sounddevice as sd
        except OSError as e:
            raise PermissionDenied(f"PortAudio no disponible: {e}") from e

        self._loop = loop
        try:
            stream = sd.InputStream(
                samplerate=MIC_SAMPLE_RATE,
                blocksize=MIC_CHUNK_FRAMES,
                dtype="int16",
                channels=CHANNELS,
                callback=self._callback,
                device=self._device,
            )
        except (sd.PortAudioError, ValueError) as e:
            raise PermissionDenied(str(e)) from e
        try:
            stream.start()
        except sd.PortAudioError as e:
            stream.close()
            raise PermissionDenied(str(e)) from e
        self._stream = stream

    def _callback(self, indata, frames, time, status) -> None:
        if status:
            log_mic("Status", str(status))
        chunk = indata[:, 0].copy()
        self._loop.call_soon_threadsafe(self.dispatch, chunk)

    def dispatch(self, chunk: np.ndarray) -> None:
        """Entrega un bloque al recorder y luego a cada tap."""
        self._sink(chunk)
        for tap in list(self._taps):
            try:
                tap(chunk)
            except Exception:
                PIPELINE_LOGGER.exception("[MIC][Tap] Tap falló; se desconecta")
                self.remove_tap(tap)

    def add_tap(self, tap: ChunkSink) -> None:
        self._taps.append(tap)

    def remove_tap(self, tap: ChunkSink) -> None:
        if tap in self._taps:
            self._taps.remove(tap)

    def close(self) -> None:
        """Para y libera el dispositivo. Idempotente."""
        stream, self._stream = self._stream, None
        self._taps.clear()
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()


class CaptureSession:
    """
    Una grabación: posee el stream del micrófono desde start() hasta stop().
    La exclusividad (una sola sesión viva) la garantiza el controlador.
    """

    def __init__(self, device: int | None = None, stream_factory=MicStream) -> None:
        self._device = device
        self._stream_factory = stream_factory
        self._stream: Optional[MicStream] = None
        self._chunks: list[np.ndarray] = []

    @property
    def capturing(self) -> bool:
        return self._stream is not None

    @property
    def stream(self) -> Optional[MicStream]:
        return self._stream

    def _accumulate(self, chunk: np.ndarray) -> None:
        self._chunks.append(chunk)

    async def start(self) -> None:
        """Pide el micrófono y empieza a acumular chunks. Lanza PermissionDenied."""
        if self._stream is not None:
            return
        loop = asyncio.get_running_loop()
        self._chunks = []
        stream = self._stream_factory(self._accumulate, device=self._device)
        try:
            await loop.run_in_executor(None, stream.open, loop)
        except BaseException:
            stream.close()
            raise
        self._stream = stream
        log_mic("Start", f"Grabando a {MIC_SAMPLE_RATE} Hz")

    async def stop(self) -> bytes | None:
        """
        Finaliza la grabación y devuelve un único blob WAV.
        Libera el micrófono siempre, haya blob o no. Sin grabación activa no hace nada.
        """
        stream, self._stream = self._stream, None
        if stream is None:
            return None
        loop = asyncio.get_running_loop()
        try:
            # Los dispatch ya encolados en el loop corren antes de retomar aquí
            await loop.run_in_executor(None, stream.close)
        finally:
            stream.close()
        chunks, self._chunks = self._chunks, []
        blob = encode_wav(chunks)
        log_mic("Stop", f"{len(chunks)} chunks, {len(blob)} bytes")
        return blob
