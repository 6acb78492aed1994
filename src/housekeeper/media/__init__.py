"""Media registry, blob storage, reference scanning and reclamation."""
