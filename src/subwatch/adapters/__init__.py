"""Adapters implementing the core ports (storage, users, mail, rendering)."""
