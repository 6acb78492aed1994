"""Housekeeper: scheduled maintenance tasks for a content platform.

The service runs a polling scheduler over persisted task records, reclaims
media objects that no content refers to, and deletes content entities
together with their dependents and embedded media.
"""
