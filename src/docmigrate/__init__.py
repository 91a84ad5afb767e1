"""docmigrate: move inline Rust documentation into external markdown files."""

__version__ = "0.3.0"
