"""
Entry point for python -m birdwatcher

Usage:
    python -m birdwatcher install [-c <connection>] [--tls]
    python -m birdwatcher scan [-i <interval>] [--reset] [-c <connection>] [--tls]
    python -m birdwatcher report [-c <connection>] [--tls]

Environment variables:
    BIRDWATCHER_CONFIG_PATH - Path to configuration file
    BIRDWATCHER_* - Configuration overrides (see config.py)
"""
import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())
