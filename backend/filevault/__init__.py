"""Encrypted file storage and retrieval service."""
