"""Release coordination for multi-component products."""
