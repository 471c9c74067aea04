"""Celery worker for scheduled Printful/Webflow sync jobs."""
