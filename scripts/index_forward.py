#!/usr/bin/env python3
"""
Entry point script for forward bridge indexing.
"""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from bridge_indexer.core.harvesters.forward_indexer import main

if __name__ == "__main__":
    sys.exit(main())
