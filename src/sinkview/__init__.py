"""sinkview - read-only viewer for logs persisted by structured-logging sinks."""

__version__ = "0.1.0"
