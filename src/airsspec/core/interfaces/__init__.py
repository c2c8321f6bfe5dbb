"""Protocols the core depends on; infrastructure provides implementations."""
