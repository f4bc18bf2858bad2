"""Trunk lifecycle: outbound registration trunks mirrored on the PBX."""
