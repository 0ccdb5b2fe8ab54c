"""revkit revision engine: packaging, loading, publishing and hot-reload of project revisions."""

__version__ = "0.4.0"
