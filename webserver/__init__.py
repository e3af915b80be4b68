"""Static file and CGI-style script server for a single root folder."""

__version__ = "1.0.0"
