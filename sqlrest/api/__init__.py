"""API Layer — FastAPI routes, envelope streaming, and global error handlers."""
