"""Shared code between the API service and the worker."""
