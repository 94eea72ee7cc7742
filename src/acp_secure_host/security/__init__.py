"""Audit trail and input validation for tool calls."""
