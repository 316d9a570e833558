"""Read-only aggregates over documents and their history."""
