"""Gateway: inbound ``{operation, family, id?, payload}`` routing and policy."""
