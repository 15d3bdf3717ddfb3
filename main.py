#!/usr/bin/env python3
"""Intune & Autopilot bulk device removal.

Thin wrapper so the tool runs from a checkout without installing it:

    $ python main.py --connection conn.json --input devices.xlsx --dry-run

See ``intune_remover.cli`` for every option.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from intune_remover.cli import main

if __name__ == "__main__":
    sys.exit(main())
