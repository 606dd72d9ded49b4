#!/usr/bin/env python3
"""Development launcher for the heart monitor."""

import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from heart_monitor.cli import main


if __name__ == "__main__":
    main()
