"""Service layer of the revision server."""
