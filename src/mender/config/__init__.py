"""Mender configuration."""
