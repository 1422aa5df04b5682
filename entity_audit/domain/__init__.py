"""Audit domain: change records, entity metadata, domain exceptions. No infrastructure."""
