"""Source execution and validation harness."""
