"""Token issuance and rotation use-cases."""
