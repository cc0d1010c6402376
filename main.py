#!/usr/bin/env python3
"""
Mender - Issue-to-patch resolution pipeline.

Main entry point for the Mender server application.
"""

import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from mender.main import main

if __name__ == "__main__":
    main()
