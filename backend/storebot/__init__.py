"""StoreBot payment reconciliation service."""
