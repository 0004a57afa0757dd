"""rowpipe: turn CSV rows into sequences of dependent HTTP requests."""

__version__ = "1.0.0"
