"""Data structures shared by the rule loader, engines and API."""
