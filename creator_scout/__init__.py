"""Creator Scout - multi-strategy Reddit scraping and AI/ML creator discovery."""

__version__ = "0.1.0"
