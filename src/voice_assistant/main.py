"""
CLI: asistente conversacional por voz o texto.
  micrófono → STT → LLM → TTS → ffplay, con waveform en vivo durante la grabación

Uso:
  python -m voice_assistant
  python -m voice_assistant --list-devices
  python -m voice_assistant --input-device 1 --api-url http://localhost:5000/api
  python -m voice_assistant --no-waveform --log-level DEBUG

Dentro del chat:
  texto + Enter      → enviar mensaje
  /r  o  Enter vacío → empezar a grabar; Enter de nuevo → parar y enviar
  /q                 → salir
"""
import argparse
import asyncio
import signal
import sys
import threading
from functools import partial
from typing import Optional, TextIO

from .audio.mic import CaptureSession, list_audio_devices
from .audio.waveform import TextCanvas, WaveformRenderer
from .backend import BackendClient
from .config import BackendConfig, get_log_level
from .controller import PipelineController
from .state import Message, Phase, Sender
from .utils.logging import PIPELINE_LOGGER, setup_logging

QUIT_COMMANDS = ("/q", "/quit")
RECORD_COMMANDS = ("", "/r")

SENDER_LABELS = {
    Sender.USER: "🧑 Tú",
    Sender.ASSISTANT: "🤖 Asistente",
}


class TerminalWaveform:
    """Redibuja el canvas en el mismo sitio de la terminal."""

    def __init__(self, out: TextIO = sys.stdout) -> None:
        self.out = out
        self._rows_drawn = 0

    def show(self, canvas: TextCanvas) -> None:
        if self._rows_drawn:
            # Sube el cursor al inicio del frame anterior
            self.out.write(f"\x1b[{self._rows_drawn}F")
        self.out.write("\n".join(f"|{row}|" for row in canvas.rows()) + "\n")
        self.out.flush()
        self._rows_drawn = canvas.height

    def reset(self) -> None:
        self._rows_drawn = 0


def print_message(message: Message) -> None:
    print(f"{SENDER_LABELS[message.sender]}: {message.text}")


def start_stdin_reader(loop: asyncio.AbstractEventLoop, line_queue: asyncio.Queue) -> threading.Thread:
    """Lee stdin en un hilo daemon; cada línea entra al loop con call_soon_threadsafe."""

    def reader() -> None:
        try:
            for line in sys.stdin:
                loop.call_soon_threadsafe(line_queue.put_nowait, line.rstrip("\n"))
            loop.call_soon_threadsafe(line_queue.put_nowait, None)
        except RuntimeError:
            # Loop ya cerrado: estamos saliendo
            return

    thread = threading.Thread(target=reader, name="stdin-reader", daemon=True)
    thread.start()
    return thread


def dispatch_line(controller: PipelineController, line: str):
    """Traduce una línea de la terminal en una acción del controlador (corutina) o None."""
    command = line.strip()
    if controller.phase is Phase.CAPTURING:
        if command in RECORD_COMMANDS:
            return controller.stop_recording()
        print("🎙️  Grabando… pulsa Enter para parar")
        return None
    if not controller.accepts_input:
        print("⏳ Espera a que termine la respuesta")
        return None
    if command in RECORD_COMMANDS:
        return controller.start_recording()
    return controller.submit_text(command)


def _report_task(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        PIPELINE_LOGGER.error("[CTRL] Acción terminó con error", exc_info=exc)


async def run_assistant(args: argparse.Namespace) -> None:
    """Arranca el chat interactivo hasta /q, EOF o Ctrl+C."""
    config = BackendConfig.from_env(args.api_url)
    loop = asyncio.get_running_loop()
    line_queue: asyncio.Queue[Optional[str]] = asyncio.Queue()

    async with BackendClient(config) as backend:
        if not await backend.healthcheck():
            print(f"⚠️  Backend no responde en {config.base_url} (sigo igualmente)")

        waveform = TerminalWaveform()
        renderer = None if args.no_waveform else WaveformRenderer(on_frame=waveform.show)

        thinking = False

        def on_phase(phase: Phase) -> None:
            nonlocal thinking
            if phase is not Phase.CAPTURING:
                waveform.reset()
            if phase is Phase.CAPTURING:
                print("🎙️  Grabando… pulsa Enter para parar")
            elif phase.is_thinking and not thinking:
                print("… Pensando")
            thinking = phase.is_thinking

        controller = PipelineController(
            backend,
            renderer=renderer,
            capture_factory=partial(CaptureSession, device=args.input_device),
            on_message=print_message,
            on_phase=on_phase,
            on_alert=lambda text: print(f"⚠️  {text}"),
        )

        try:
            loop.add_signal_handler(signal.SIGINT, line_queue.put_nowait, None)
        except NotImplementedError:
            pass

        start_stdin_reader(loop, line_queue)
        print("🎧 LISTO — Escribe o pulsa Enter para hablar (/q para salir)")

        tasks: set[asyncio.Task] = set()
        try:
            while True:
                line = await line_queue.get()
                if line is None or line.strip() in QUIT_COMMANDS:
                    break
                action = dispatch_line(controller, line)
                if action is None:
                    continue
                task = asyncio.create_task(action)
                tasks.add(task)
                task.add_done_callback(tasks.discard)
                task.add_done_callback(_report_task)
        finally:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await controller.aclose()

    print("👋 Salida limpia")


def main() -> None:
    parser = argparse.ArgumentParser(description="Asistente conversacional por voz")
    parser.add_argument("--list-devices", action="store_true", help="Listar dispositivos de audio")
    parser.add_argument("--input-device", type=int, default=None, help="ID dispositivo de entrada (mic)")
    parser.add_argument("--api-url", default=None, help="URL base del backend")
    parser.add_argument("--no-waveform", action="store_true", help="No dibujar el waveform al grabar")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING…")
    args = parser.parse_args()

    setup_logging(args.log_level or get_log_level())

    if args.list_devices:
        list_audio_devices()
        return

    asyncio.run(run_assistant(args))


if __name__ == "__main__":
    main()
