"""WSGI entry point for the fund analytics service."""

import os
import sys
from typing import List

from fund_analytics import create_app

DEFAULT_PORT = 5000

app = create_app()


def resolve_port(argv: List[str]) -> int:
    """Port from ``--port N`` on the command line, else $PORT, else 5000."""
    if "--port" in argv:
        index = argv.index("--port")
        if index + 1 < len(argv):
            return int(argv[index + 1])
    return int(os.environ.get("PORT", DEFAULT_PORT))


if __name__ == "__main__":
    app.run(debug=app.config["DEBUG"], host="0.0.0.0", port=resolve_port(sys.argv[1:]))
