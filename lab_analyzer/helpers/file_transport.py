import asyncio
import time
from pathlib import Path
from typing import Dict, Optional

from loguru import logger
from watchdog.events import PatternMatchingEventHandler
from watchdog.observers import Observer


def read_when_ready(path: Path, attempts: int = 10, delay: float = 0.05) -> Optional[str]:
    """Read a file that may still be being written; None if it vanished."""
    for _ in range(attempts - 1):
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            # Se movió justo ahora
            return None
        except OSError:
            time.sleep(delay)
    return path.read_text(encoding="utf-8")


class FileWatcher:
    """Forwards new/changed message files in ``inbox`` to an async callback."""

    def __init__(self, inbox: str, glob: str, on_message_async, loop: asyncio.AbstractEventLoop):
        self.inbox = Path(inbox)
        self.inbox.mkdir(parents=True, exist_ok=True)
        self.loop = loop
        self.on_message_async = on_message_async
        self._seen: Dict[str, float] = {}
        self.handler = PatternMatchingEventHandler(patterns=[glob], ignore_directories=True)

        # created y modified llegan juntos: se despacha una vez por mtime
        self.handler.on_created = lambda e: self._submit(Path(e.src_path))
        self.handler.on_modified = lambda e: self._submit(Path(e.src_path))
        self.handler.on_moved = self._on_moved
        self.handler.on_deleted = lambda e: self._forget(Path(e.src_path))

        self.observer = Observer()

    def _forget(self, path: Path):
        # El archivo salió del inbox (procesado o borrado)
        self._seen.pop(str(path), None)

    def _on_moved(self, event):
        self._forget(Path(event.src_path))
        self._submit(Path(event.dest_path))

    def _submit(self, path: Path):
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return
        if self._seen.get(str(path)) == mtime:
            return
        self._seen[str(path)] = mtime

        text = read_when_ready(path)
        if text is None:
            return
        logger.debug(f"Archivo recibido: {path}")
        # Ejecutar la corrutina en el loop principal (thread-safe)
        asyncio.run_coroutine_threadsafe(self.on_message_async(text, str(path)), self.loop)

    def start(self):
        self.observer.schedule(self.handler, str(self.inbox), recursive=False)
        self.observer.start()

    def stop(self):
        self.observer.stop()
        self.observer.join()
