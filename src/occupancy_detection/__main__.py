"""
Entry point for running the occupancy detection system as a module.

Usage:
    python -m occupancy_detection [--config PATH] [--once]
"""

from .cli import main

if __name__ == "__main__":
    main()
