import argparse
import atexit
import logging
import os
import sys

from config.config_manager import ConfigManager
from network.api_server import create_app
from plugins.exiftool_process import is_exiftool_available, shutdown_all
from plugins.metadata_gateway import ExifToolMetadataGateway
from plugins.thumbnail_gateway import PillowThumbnailGateway


def setup_logging(log_level, log_dir="~/.photopicks"):
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    log_dir = os.path.expanduser(log_dir)
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "server.log")
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[
            logging.FileHandler(log_path, mode="a"),
            logging.StreamHandler(sys.stderr)
        ]
    )


def build_app(config_manager):
    """Wire the exiftool/Pillow gateways into the Flask app."""
    metadata_gateway = ExifToolMetadataGateway(config_manager)
    thumbnail_gateway = PillowThumbnailGateway(quality=config_manager.get("thumbnail.quality", 80))
    return create_app(config_manager, metadata_gateway, thumbnail_gateway)


def main(argv=None):
    parser = argparse.ArgumentParser(description="PhotoPicks server: local photo listing, previews and metadata API.")
    parser.add_argument('--host', default=None, help='Interface to bind (default from config, 127.0.0.1).')
    parser.add_argument('--port', type=int, default=None, help='Port to listen on (default from config, 3001).')
    parser.add_argument('--root', default=None, help='Folder listed when a request gives no path.')
    parser.add_argument('--config', default=None, help='Path to config.yaml.')
    args = parser.parse_args(argv)

    config_manager = ConfigManager(args.config)
    logging_level = config_manager.get("logging_level", "INFO")
    setup_logging(logging_level, config_manager.get("log_dir", "~/.photopicks"))
    logging.info(f"Logging level set to: {logging_level.upper()}")

    if args.root:
        # Runtime override only; not written back to the config file.
        config_manager.config.setdefault("server", {})["default_root"] = os.path.abspath(args.root)

    executable = config_manager.get("exiftool.executable", "exiftool")
    if not is_exiftool_available(executable):
        logging.warning("exiftool not found: listings will be empty and metadata edits will fail "
                        "until it is installed.")

    host = args.host or config_manager.get("server.host", "127.0.0.1")
    port = args.port or int(config_manager.get("server.port", 3001))

    app = build_app(config_manager)
    # Cleanup exiftool processes on exit
    atexit.register(shutdown_all)

    logging.info(f"Server running on http://{host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True, use_reloader=False)
    except OSError as e:
        logging.error(f"Server failed to start: {e}", exc_info=True)
        sys.exit(1)
    finally:
        shutdown_all()
        logging.info("Server shutdown complete.")


if __name__ == "__main__":
    main()
