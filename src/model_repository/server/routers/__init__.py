"""API routers for the model repository server."""
