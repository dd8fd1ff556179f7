"""Ralph loop: streaming event engine and session control for the Claude CLI."""
