"""Shared utilities for Mortar."""
