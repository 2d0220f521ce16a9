"""HTTP surface: FastAPI app factory, routes and metrics."""
