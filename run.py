#!/usr/bin/env python3
"""Convenience runner for the journey track tools.

Usage:
    python run.py ingest morning-run.gpx evening-ride.fit
    python run.py inspect lake-loop.kmz --json
"""
import sys

from journey_tracks.main import main

if __name__ == "__main__":
    sys.exit(main())
