#!/usr/bin/env python3
"""
Smart Bridge main entry point.

Allows Smart Bridge to be run as a module: python3 -m smartbridge
"""

import sys

from smartbridge.app.run import main

if __name__ == "__main__":
    sys.exit(main())
