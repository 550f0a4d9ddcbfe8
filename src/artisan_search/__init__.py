"""AI-assisted product search and ranking for the artisan marketplace."""

__version__ = "0.1.0"
