"""JSON schemas for ddsm_fetch configuration files."""
