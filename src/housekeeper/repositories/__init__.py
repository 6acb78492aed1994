"""Persistence gateways backed by SQLAlchemy sessions."""
