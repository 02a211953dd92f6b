"""Request validators for the JSON API."""
