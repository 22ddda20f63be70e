"""Web API (FastAPI) for the engagement hub."""
