"""devstack — local web-development environment provisioning."""

__version__ = "0.1.0"
