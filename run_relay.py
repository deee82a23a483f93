#!/usr/bin/env python3
"""
Run the SyncMusic relay.

This script starts the WebSocket relay, the HTTP status API and NAT
traversal in a single process.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from syncmusic_relay.service import main

if __name__ == "__main__":
    main()
