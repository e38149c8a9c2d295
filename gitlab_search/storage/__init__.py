"""On-disk cache of the enumerated project list."""
