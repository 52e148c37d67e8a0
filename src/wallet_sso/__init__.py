"""Wallet signature single-sign-on service."""
