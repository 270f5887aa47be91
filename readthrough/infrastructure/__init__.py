"""Infrastructure layer: storage adapters and monitoring."""
