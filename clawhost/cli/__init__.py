"""clawhost command line interface."""
