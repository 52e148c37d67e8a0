"""Operational scripts for the Wallet SSO service."""
