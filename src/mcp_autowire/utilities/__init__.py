"""Utilities shared across mcp-autowire."""
