import logging
import sys
import os
import argparse
import subprocess
import tempfile
import time
from urllib.parse import urlparse
from PySide6.QtWidgets import QApplication
from PySide6.QtCore import QTimer
from config.config_manager import ConfigManager
from gui.main_window import TriageWindow
from network.api_client import PhotoPicksClient


def setup_logging(log_level, log_dir="~/.photopicks"):
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    log_dir = os.path.expanduser(log_dir)
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "gui.log")
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path, mode="a"),
            logging.StreamHandler(sys.stdout)
        ]
    )


def _wait_for_server(client: PhotoPicksClient, timeout: float = 10.0) -> bool:
    deadline = time.time() + timeout
    while not client.ping():
        if time.time() > deadline:
            return False
        time.sleep(0.2)
    return True


def _launch_server(server_url: str, config_path=None) -> str:
    """Start photopicks_server.py detached; returns the path of its stderr log."""
    parsed = urlparse(server_url)
    server_script = os.path.join(os.path.dirname(os.path.abspath(__file__)), "photopicks_server.py")
    cmd = [sys.executable, server_script, "--host", parsed.hostname or "127.0.0.1",
           "--port", str(parsed.port or 3001)]
    if config_path:
        cmd += ["--config", config_path]
    log_file = tempfile.NamedTemporaryFile(delete=False, suffix='.log')
    subprocess.Popen(
        cmd,
        stdout=subprocess.DEVNULL,
        stderr=log_file,
        start_new_session=True,
    )
    log_file.close()
    return log_file.name


def main(argv=None):
    parser = argparse.ArgumentParser(description="PhotoPicks: keyboard-driven photo triage.")
    parser.add_argument('directory', nargs='?', default=None, help='The directory to open.')
    parser.add_argument(
        '--recursive',
        action=argparse.BooleanOptionalAction,
        default=False,
        help='Include photos in subfolders.'
    )
    parser.add_argument('--server-url', default=None, help='PhotoPicks server to use (default from config).')
    parser.add_argument('--config', default=None, help='Path to config.yaml.')
    args = parser.parse_args(argv)
    target_dir = args.directory

    config_manager = ConfigManager(args.config)

    logging_level = config_manager.get("logging_level", "INFO")
    setup_logging(logging_level, config_manager.get("log_dir", "~/.photopicks"))

    logging.info("Starting PhotoPicks GUI")

    server_url = args.server_url or config_manager.get("client.server_url", "http://127.0.0.1:3001")
    client = PhotoPicksClient(server_url, timeout=float(config_manager.get("client.timeout", 30.0)))

    server_log_path = None
    if not client.ping():
        logging.info("Server not running, launching it...")
        server_log_path = _launch_server(server_url, args.config)

    if not _wait_for_server(client):
        msg = f"Server not available at {server_url} after 10 seconds."
        if server_log_path:
            msg += f" See server log: {server_log_path}"
        logging.error(msg)
        return 1

    if target_dir:
        target_dir = os.path.abspath(target_dir)
        if not os.path.isdir(target_dir):
            logging.error(f"Invalid directory provided: {target_dir}")
            return 1

    app = QApplication(sys.argv[:1])
    app.setApplicationName("PhotoPicks")

    window = TriageWindow(config_manager, client)
    window.show()
    # why: first paint completes before the scan request goes out
    app.processEvents()
    logging.info("[startup] window shown")

    if target_dir:
        QTimer.singleShot(0, lambda: window.load_directory(target_dir, args.recursive))

    exit_code = app.exec()

    logging.info(f"Application exiting with code {exit_code}.")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
