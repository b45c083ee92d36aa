"""Send/receive synchronization of project folders through version control."""

__version__ = "0.1.0"
