"""Rule file model, loader and error types."""
