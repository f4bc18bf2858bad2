"""Outbound list lifecycle: dial-list masters and their entries."""
