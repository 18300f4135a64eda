#!/usr/bin/env python
"""
CIJ Link Service - Standalone Entry Point

Run directly:
    python main.py

Or with environment variables:
    CIJ_RELAY_PORT=8766 CIJ_LOG_LEVEL=DEBUG python main.py
"""

import os
import sys

# Ensure package is importable when running directly
if __name__ == '__main__':
    root_dir = os.path.dirname(os.path.abspath(__file__))
    if root_dir not in sys.path:
        sys.path.insert(0, root_dir)

from cij_link_service.app import main


if __name__ == '__main__':
    main()
