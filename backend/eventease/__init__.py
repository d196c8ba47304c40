"""EventEase: event registration API with a transactional registration core."""

__version__ = "1.0.0"
