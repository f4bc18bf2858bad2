"""Composition root and startup orchestration for the PBX control plane."""
