#!/usr/bin/env python3
"""Demo entry point for Quiz Drill."""

import sys
from pathlib import Path


if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent / "src"))

    from quiz_drill.tutor import main

    sys.exit(main())
