"""nucl-calibration: import and quality control for nucleotide calibration runs."""

__version__ = "0.1.0"
