"""Model repository server: HTTP file management for server-resident git repositories."""

__version__ = "0.3.0"
