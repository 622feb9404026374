"""clawhost - control plane for hosted OpenClaw gateway instances."""

__version__ = "0.1.0"
