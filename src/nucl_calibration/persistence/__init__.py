"""Provenance tracking for pipeline runs."""

from nucl_calibration.persistence.provenance import ProvenanceTracker

__all__ = ["ProvenanceTracker"]
