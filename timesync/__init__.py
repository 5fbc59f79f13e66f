"""timesync - jittered periodic sync scheduling."""
__version__ = "0.1.0"
