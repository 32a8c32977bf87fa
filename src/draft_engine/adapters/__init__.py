"""Host adapters for the revision engine."""
