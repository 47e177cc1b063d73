"""Command line interface for nucl-calibration."""
