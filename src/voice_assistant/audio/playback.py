"""
Reproducción de audio sintetizado con ffplay (payload por stdin).
PlaybackHandle envuelve un proceso; PlaybackSlot garantiza uno solo a la vez.
"""
import asyncio
from typing import Awaitable, Callable, Optional

from ..config import FFPLAY_BINARY
from ..errors import PlaybackError
from ..utils.logging import PIPELINE_LOGGER, log_tts


class PlaybackHandle:
    """Un proceso ffplay sonando. stop() es idempotente."""

    def __init__(self, proc: asyncio.subprocess.Process, payload: bytes) -> None:
        self._proc = proc
        self._stopped = False
        self._feeder = asyncio.get_running_loop().create_task(self._feed(payload))

    @classmethod
    async def open(cls, payload: bytes) -> "PlaybackHandle":
        """Arranca ffplay leyendo de stdin y empieza a enviarle el payload."""
        try:
            proc = await asyncio.create_subprocess_exec(
                FFPLAY_BINARY,
                "-nodisp",
                "-autoexit",
                "-loglevel", "quiet",
                "-",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError:
            raise PlaybackError("ffplay no encontrado en PATH. Instala ffmpeg.")
        return cls(proc, payload)

    async def _feed(self, payload: bytes) -> None:
        stdin = self._proc.stdin
        if stdin is None:
            return
        try:
            stdin.write(payload)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            log_tts("Feed", "ffplay cerró stdin")
        finally:
            stdin.close()

    @property
    def stopped(self) -> bool:
        return self._stopped or self._proc.returncode is not None

    async def wait(self) -> int:
        """Espera al final natural (o a stop())."""
        return await self._proc.wait()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if not self._feeder.done():
            self._feeder.cancel()
        if self._proc.returncode is None:
            try:
                self._proc.terminate()
            except ProcessLookupError:
                pass


Player = Callable[[bytes], Awaitable[PlaybackHandle]]


class PlaybackSlot:
    """
    Slot de un solo dueño para el audio que suena.
    play() corta el anterior antes de arrancar; interrupt() es idempotente;
    al terminar de forma natural el slot se vacía y avisa con on_end.
    """

    def __init__(self, player: Player = PlaybackHandle.open) -> None:
        self._player = player
        self._handle: Optional[PlaybackHandle] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> Optional[PlaybackHandle]:
        return self._handle

    async def play(self, payload: bytes, on_end: Optional[Callable[[], None]] = None) -> None:
        self.interrupt()
        handle = await self._player(payload)
        self._handle = handle
        self._watcher = asyncio.get_running_loop().create_task(self._watch(handle, on_end))
        log_tts("Play-Start", f"{len(payload)} bytes")

    async def _watch(self, handle: PlaybackHandle, on_end: Optional[Callable[[], None]]) -> None:
        await handle.wait()
        if self._handle is not handle:
            return
        self._handle = None
        self._watcher = None
        log_tts("Play-End", "Fin de reproducción")
        if on_end is not None:
            try:
                on_end()
            except Exception:
                PIPELINE_LOGGER.exception("[TTS][Play-End] Error en callback de fin")

    def interrupt(self) -> None:
        watcher, self._watcher = self._watcher, None
        handle, self._handle = self._handle, None
        if watcher is not None and not watcher.done():
            watcher.cancel()
        if handle is not None:
            handle.stop()
            log_tts("Play-Stop", "Reproducción interrumpida")
