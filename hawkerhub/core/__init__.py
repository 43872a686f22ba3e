"""Core constants and types shared across HawkerHub modules."""
