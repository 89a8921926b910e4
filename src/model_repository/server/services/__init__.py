"""Services for the model repository server."""
