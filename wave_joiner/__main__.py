"""Package entry point for ``python -m wave_joiner``.

HOW: ``--serve`` starts the HTTP API; anything else is handed to the CLI.
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from wave_joiner.server.app import run_api
        run_api()
    else:
        from wave_joiner.cli import main
        main()
