"""Dialplan lifecycle: dialplan masters and their ordered steps."""
