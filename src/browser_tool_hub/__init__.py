"""Multi-session browser automation exposed as dispatchable tools."""
