"""Command-line interface for fleetlock."""
