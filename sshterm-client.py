#!/usr/bin/env python3
"""
Terminal client for the SSH management backend.

- Live sessions: single-use ws ticket, framed websocket stream, geometry sync
- Recording playback with original pacing, pause/resume, restart
- Optional JSON-line session logs
"""

import sys

from sshterm.main import main

if __name__ == "__main__":
    sys.exit(main())
