"""HTTP API for the Wallet SSO service."""
