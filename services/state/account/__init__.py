"""Account lifecycle: manager users, their permissions and contacts."""
