"""Shop catalog REST service."""
