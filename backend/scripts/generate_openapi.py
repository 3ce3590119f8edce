"""Generate the OpenAPI schema of the troubleshooter service.

Usage: python scripts/generate_openapi.py [output.json]
Writes to stdout when no output path is given.
"""

import json
import sys
from pathlib import Path
from typing import Any

from subdoctor.main import app


def build_schema() -> dict[str, Any]:
    return app.openapi()


def main(argv: list[str]) -> None:
    schema = json.dumps(build_schema(), indent=2)
    if len(argv) > 1:
        Path(argv[1]).write_text(schema + "\n", encoding="utf-8")
    else:
        print(schema)


if __name__ == "__main__":
    main(sys.argv)
