"""birdwatcher: sample PostgreSQL exclusive locks and report lock episodes."""

__version__ = "1.0.0"
