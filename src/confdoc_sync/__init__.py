"""Configuration documentation synchronizer."""
