"""Infrastructure layer: HTTP adapters for vendor chat APIs."""
