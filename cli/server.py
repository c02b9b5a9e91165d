"""Start the PhotoPicks HTTP server in the foreground."""

__completions__ = ["--host", "--port", "--root", "--config"]


def main():
    from photopicks_server import main as _server_main
    _server_main()


if __name__ == "__main__":
    main()
