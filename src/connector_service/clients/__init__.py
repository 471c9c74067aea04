"""Vendor REST API clients."""

from connector_service.clients.printful import PrintfulClient
from connector_service.clients.webflow import WebflowClient

__all__ = ["PrintfulClient", "WebflowClient"]
