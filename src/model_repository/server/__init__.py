"""FastAPI server exposing repository management endpoints."""
