"""
Persistent exiftool process using -stay_open mode.

The server shares one ExifToolProcess across request threads; commands are
serialized with a lock, so exiftool sees one command at a time. Numbered
execute IDs make sentinel detection safe for arbitrary output.
"""
import functools
import json
import logging
import select
import subprocess
import threading
import time
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Registry of all live processes for orderly shutdown.
_all_processes: List["ExifToolProcess"] = []
_registry_lock = threading.Lock()


@functools.lru_cache(maxsize=4)
def is_exiftool_available(executable: str = "exiftool") -> bool:
    """Return True if exiftool can be run. Result is cached per executable."""
    try:
        subprocess.run([executable, "-ver"], capture_output=True, check=True, timeout=5)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
        logger.warning("exiftool not found or unavailable (%s).", executable)
        return False


class ExifToolProcess:
    """Wraps a single persistent exiftool -stay_open process.

    The process is spawned lazily on the first command so constructing the
    object never fails when exiftool is missing.
    """

    def __init__(self, executable: str = "exiftool", timeout: float = DEFAULT_TIMEOUT) -> None:
        self.executable = executable
        self.timeout = timeout
        self._process: Optional[subprocess.Popen] = None
        self._counter = 0
        self._lock = threading.Lock()
        with _registry_lock:
            _all_processes.append(self)

    def _spawn(self) -> subprocess.Popen:
        return subprocess.Popen(
            [self.executable, "-stay_open", "True", "-@", "-"],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )

    def execute(self, args: List[str]) -> bytes:
        """Send args to the persistent process and return its stdout bytes.

        A failed or timed-out command restarts the process and is retried once;
        the second failure propagates (OSError, RuntimeError or TimeoutError).
        """
        with self._lock:
            try:
                return self._do_execute(args)
            except (OSError, RuntimeError, TimeoutError, ValueError) as e:
                logger.warning("ExifToolProcess: execute failed (%s); restarting.", e)
                self._restart()
                return self._do_execute(args)

    def execute_json(self, args: List[str]) -> list:
        """Run a read command with ``-json`` and return the decoded list (empty on no output)."""
        output = self.execute(["-json", *args])
        text = output.decode("utf-8", "replace").strip()
        if not text:
            return []
        return json.loads(text)

    def _do_execute(self, args: List[str]) -> bytes:
        if self._process is None or self._process.poll() is not None:
            self._process = self._spawn()
            self._counter = 0

        self._counter += 1
        exec_id = self._counter
        sentinel = f"{{ready{exec_id}}}\n".encode()

        cmd = "\n".join(args) + f"\n-execute{exec_id}\n"
        self._process.stdin.write(cmd.encode())  # type: ignore[union-attr]
        self._process.stdin.flush()              # type: ignore[union-attr]

        output = bytearray()
        sentinel_len = len(sentinel)
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"exiftool did not respond within {self.timeout}s")
            ready, _, _ = select.select([self._process.stdout], [], [], remaining)
            if not ready:
                raise TimeoutError(f"exiftool did not respond within {self.timeout}s")
            chunk = self._process.stdout.read1(65536)  # type: ignore[union-attr]
            if not chunk:
                raise RuntimeError("exiftool process closed stdout unexpectedly")
            output.extend(chunk)
            if len(output) >= sentinel_len and output[-sentinel_len:] == sentinel:
                del output[-sentinel_len:]
                break

        return bytes(output)

    def _restart(self) -> None:
        if self._process is not None:
            try:
                self._process.kill()
                self._process.wait(timeout=2)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug("ExifToolProcess: kill during restart failed: %s", e)
        self._process = None
        self._counter = 0
        logger.info("ExifToolProcess: reset; next command spawns a fresh process.")

    def terminate(self) -> None:
        """Ask exiftool to exit cleanly, then force-kill if needed."""
        with self._lock:
            proc, self._process = self._process, None
        if proc is None:
            return
        try:
            proc.stdin.write(b"-stay_open\nFalse\n")  # type: ignore[union-attr]
            proc.stdin.flush()                         # type: ignore[union-attr]
            proc.wait(timeout=5)
        except (OSError, ValueError, subprocess.TimeoutExpired) as e:
            logger.debug("ExifToolProcess: clean exit failed (%s); killing.", e)
        finally:
            if proc.poll() is None:
                proc.kill()


def shutdown_all() -> None:
    """Terminate every registered ExifToolProcess. Called at server shutdown."""
    with _registry_lock:
        processes = list(_all_processes)
        _all_processes.clear()
    for proc in processes:
        proc.terminate()
    logger.info("ExifToolProcess: all %d process(es) terminated.", len(processes))
