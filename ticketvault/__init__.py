"""Ticket tracking service with on-disk attachments."""
