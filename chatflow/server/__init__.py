"""ChatFlow HTTP API (FastAPI). Run with ``chatflow-server``."""
