"""Entity Store: typed, soft-deleted control-plane records and parent views."""
