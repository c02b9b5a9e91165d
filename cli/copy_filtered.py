#!/usr/bin/env python3
"""Copy the photos of a folder that pass a rating/label filter.

Usage:
    photopicks copy-filtered <source_dir> <destination_dir> [--min-rating N] [--label COLOR]

Workflow:
    1. Scan the source folder (locally through exiftool, or through a
       running server with --server-url).
    2. Apply the same filter the triage window uses.
    3. Copy the matching files (and their .xmp sidecars) to the destination.
"""

import argparse
import logging
import sys

__completions__ = ["--min-rating", "--label", "--recursive", "--no-recursive",
                   "--server-url", "--config", "--dry-run"]


def build_session(config_manager, server_url=None):
    """Session over a local exiftool gateway, or over the HTTP client when *server_url* is given."""
    from core.triage_session import TriageSession

    if server_url:
        from network.api_client import PhotoPicksClient
        client = PhotoPicksClient(server_url, timeout=float(config_manager.get("client.timeout", 30.0)))
        return TriageSession(client, config_manager.allowed_extensions, config_manager.color_labels,
                             copy_files=client.copy_files)

    from plugins.metadata_gateway import ExifToolMetadataGateway
    return TriageSession(ExifToolMetadataGateway(config_manager),
                         config_manager.allowed_extensions, config_manager.color_labels)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="photopicks copy-filtered",
                                     description="Copy photos matching a rating/label filter.")
    parser.add_argument("source", help="Folder to scan.")
    parser.add_argument("destination", help="Folder to copy into (created if missing).")
    parser.add_argument("--min-rating", type=int, default=0, help="Minimum star rating (0-5).")
    parser.add_argument("--label", default="Any", help="Color label to match, or Any.")
    parser.add_argument("--recursive", action=argparse.BooleanOptionalAction, default=False,
                        help="Include photos in subfolders.")
    parser.add_argument("--server-url", default=None, help="Use a running PhotoPicks server.")
    parser.add_argument("--config", default=None, help="Path to config.yaml.")
    parser.add_argument("--dry-run", action="store_true", help="List matching photos without copying.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')

    from config.config_manager import ConfigManager
    config_manager = ConfigManager(args.config)
    session = build_session(config_manager, args.server_url)
    try:
        session.open_folder(args.source, args.recursive)
        if session.store.last_warning:
            print(f"Scan failed: {session.store.last_warning}", file=sys.stderr)
            return 1
        try:
            session.set_filter(min_rating=args.min_rating, label=args.label)
        except ValueError as e:
            parser.error(str(e))

        matched = len(session.visible)
        print(f"{matched} of {len(session.store)} photo(s) match.")
        if args.dry_run:
            for record in session.visible:
                print(f"  {record.path}")
            return 0
        if matched == 0:
            return 0

        from core.errors import CopyError
        try:
            count = session.copy_visible(args.destination)
        except CopyError as e:
            print(f"Copy failed: {e}", file=sys.stderr)
            return 1
        print(f"Copied {count} of {matched} photo(s) to {args.destination}")
        return 0 if count == matched else 1
    finally:
        session.shutdown()
        if not args.server_url:
            from plugins.exiftool_process import shutdown_all
            shutdown_all()


if __name__ == "__main__":
    sys.exit(main())
