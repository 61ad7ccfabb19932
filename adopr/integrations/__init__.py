"""Integrations with external command line tools."""
