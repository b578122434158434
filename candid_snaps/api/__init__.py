"""HTTP API package for the Candid Snaps runtime."""
