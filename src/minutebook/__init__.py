"""
Minutebook: time-entry records with per-owner folio numbering.

The creation path assigns every record a human-readable, strictly increasing
folio scoped to its owner, and stays correct under concurrent creations,
rolling deployments of the store-side assignment function, and transient
write conflicts.
"""

__version__ = "0.1.0"
