"""A small shell that parses command pipelines and runs them locally or over TCP."""

__version__ = "0.1.0"