"""Command Dispatcher: runs dialplan scripts against live PBX channels."""
