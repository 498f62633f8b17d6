"""
Waveform en vivo durante la captura.
Tap de análisis de solo lectura sobre el stream del micrófono, canvas de texto
de tamaño fijo y un loop de frames cancelable.
"""
import asyncio
import logging
from typing import Callable, Optional

import numpy as np

from ..config import ANALYSER_FFT_SIZE, WAVEFORM_FPS, WAVEFORM_HEIGHT, WAVEFORM_WIDTH
from ..utils.logging import PIPELINE_LOGGER, log_viz


class AnalyserTap:
    """Ventana con las últimas fft_size muestras del stream. No consume ni retrasa nada."""

    def __init__(self, fft_size: int = ANALYSER_FFT_SIZE) -> None:
        self.fft_size = fft_size
        self._window = np.zeros(fft_size, dtype=np.float32)

    def __call__(self, chunk: np.ndarray) -> None:
        samples = np.asarray(chunk, dtype=np.float32) / 32768.0
        if len(samples) >= self.fft_size:
            self._window = samples[-self.fft_size:].copy()
        else:
            self._window = np.concatenate((self._window[len(samples):], samples))

    def time_domain_data(self) -> np.ndarray:
        """Muestras actuales en [-1, 1]."""
        return np.clip(self._window, -1.0, 1.0)


class TextCanvas:
    """Canvas de caracteres de tamaño fijo."""

    def __init__(self, width: int = WAVEFORM_WIDTH, height: int = WAVEFORM_HEIGHT, ink: str = "*") -> None:
        self.width = width
        self.height = height
        self.ink = ink
        self._grid = np.full((height, width), " ", dtype="<U1")

    def clear(self) -> None:
        self._grid[:, :] = " "

    def plot(self, x: int, y: int) -> None:
        if 0 <= x < self.width and 0 <= y < self.height:
            self._grid[y, x] = self.ink

    def polyline(self, points: list[tuple[float, float]]) -> None:
        """Traza segmentos consecutivos como una sola línea continua."""
        if len(points) == 1:
            x, y = points[0]
            self.plot(round(x), round(y))
        for (x0, y0), (x1, y1) in zip(points, points[1:]):
            steps = max(abs(round(x1) - round(x0)), abs(round(y1) - round(y0)), 1)
            for i in range(steps + 1):
                t = i / steps
                self.plot(round(x0 + (x1 - x0) * t), round(y0 + (y1 - y0) * t))

    def rows(self) -> list[str]:
        return ["".join(row) for row in self._grid]

    def render(self) -> str:
        return "\n".join(self.rows())


def waveform_points(samples: np.ndarray, width: int, height: int) -> list[tuple[float, float]]:
    """
    Escala las muestras al canvas: silencio = línea plana en el centro,
    amplitud máxima = bordes superior/inferior.
    """
    n = len(samples)
    if n == 0:
        return []
    mid = (height - 1) / 2
    xs = np.linspace(0, width - 1, n) if n > 1 else np.zeros(1)
    ys = mid - np.asarray(samples, dtype=np.float64) * mid
    return list(zip(xs.tolist(), ys.tolist()))


class WaveformRenderer:
    """
    Pinta el waveform del stream del micrófono mientras dure la captura.
    Activación declarativa vía update(); al desactivar se cancela el loop de
    frames y se suelta el tap siempre, también en caminos de error.
    """

    def __init__(
        self,
        canvas: Optional[TextCanvas] = None,
        *,
        fps: int = WAVEFORM_FPS,
        fft_size: int = ANALYSER_FFT_SIZE,
        on_frame: Optional[Callable[[TextCanvas], None]] = None,
    ) -> None:
        self.canvas = canvas or TextCanvas()
        self.fps = fps
        self.fft_size = fft_size
        self.on_frame = on_frame
        self._stream = None
        self._tap: Optional[AnalyserTap] = None
        self._task: Optional[asyncio.Task] = None
        self.frames_drawn = 0

    @property
    def active(self) -> bool:
        return self._task is not None

    def update(self, capturing: bool, stream) -> None:
        """Sincroniza el renderer con el estado de captura actual."""
        should_run = capturing and stream is not None and stream.active
        if should_run and stream is self._stream and self.active:
            return
        self.deactivate()
        if should_run:
            self._activate(stream)

    def _activate(self, stream) -> None:
        try:
            tap = AnalyserTap(self.fft_size)
            stream.add_tap(tap)
            self._stream, self._tap = stream, tap
            self._task = asyncio.get_running_loop().create_task(self._frame_loop())
        except Exception:
            PIPELINE_LOGGER.exception("[VIZ][Start] No se pudo activar el waveform")
            self.deactivate()
            return
        log_viz("Start", "Waveform activo")

    async def _frame_loop(self) -> None:
        interval = 1.0 / self.fps
        try:
            while True:
                self.draw_frame()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            raise
        except Exception:
            PIPELINE_LOGGER.exception("[VIZ][Frame] Error pintando frame; se desactiva")
            self._release(cancel_task=False)

    def draw_frame(self) -> None:
        """Un frame: limpiar todo, leer muestras, trazar una polilínea."""
        if self._tap is None:
            return
        self.canvas.clear()
        samples = self._tap.time_domain_data()
        self.canvas.polyline(waveform_points(samples, self.canvas.width, self.canvas.height))
        self.frames_drawn += 1
        if self.on_frame is not None:
            self.on_frame(self.canvas)

    def deactivate(self) -> None:
        """Cancela el frame pendiente y suelta el contexto de análisis. Idempotente."""
        was_active = self.active or self._tap is not None
        self._release(cancel_task=True)
        if was_active:
            log_viz("Stop", "Waveform liberado", logging.DEBUG)

    def _release(self, cancel_task: bool) -> None:
        task, self._task = self._task, None
        stream, self._stream = self._stream, None
        tap, self._tap = self._tap, None
        if cancel_task and task is not None and not task.done():
            task.cancel()
        if stream is not None and tap is not None:
            stream.remove_tap(tap)
