"""In-memory stand-ins for the data sources and the review repository."""
