"""Launch the PhotoPicks triage window (auto-starts the server if needed)."""

import sys

__completions__ = ["--recursive", "--no-recursive", "--server-url", "--config"]

def main():
    from main import main as _gui_main
    sys.exit(_gui_main())

if __name__ == "__main__":
    main()
