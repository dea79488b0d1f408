"""Service clients and the shared signed-request sender."""
