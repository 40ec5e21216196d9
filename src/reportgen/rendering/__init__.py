"""HTML template rendering."""
