"""Credential request types, statement rendering and key material handling."""
