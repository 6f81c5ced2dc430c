"""Plugins used by the discovery and deploy hook tests."""
