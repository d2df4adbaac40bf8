#!/usr/bin/env python3
"""
Run FloodGuard from a source checkout without installing it.

    python run.py [--env-file PATH] [--dry-run]

Installed copies provide the same entry point as the ``floodguard`` command.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from floodguard import main  # noqa: E402

if __name__ == "__main__":
    main(sys.argv[1:])
