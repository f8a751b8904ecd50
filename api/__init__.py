"""HTTP service surface."""
