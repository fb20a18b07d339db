"""Read Portable Executable DOS headers, bound imports and .NET metadata, and report header anomalies."""

__version__ = "0.1.0"