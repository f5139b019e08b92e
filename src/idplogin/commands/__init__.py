"""Built-in CLI commands for idplogin."""
