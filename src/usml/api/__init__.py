"""REST API for USML document validation."""
