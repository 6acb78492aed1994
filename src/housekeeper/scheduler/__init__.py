"""Scheduled task records, their handlers and the polling scheduler."""
