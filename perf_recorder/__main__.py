"""Allow ``python -m perf_recorder`` to record a performance trace."""

from __future__ import annotations

import sys

from perf_recorder.cli.record import main


if __name__ == "__main__":
    sys.exit(main())
