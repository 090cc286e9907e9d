"""Configuration, persistence plumbing, errors and logging."""
