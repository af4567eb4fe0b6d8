"""suivi_server — FastAPI application exposing the suivi engine over HTTP."""
