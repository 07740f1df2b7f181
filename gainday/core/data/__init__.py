"""Market data access and the shared exception hierarchy."""
