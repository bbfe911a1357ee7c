"""HTTP service for the rule manager."""
