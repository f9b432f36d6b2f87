"""CCA command line interface."""
