"""Notification, reminder, archive and import operations."""
