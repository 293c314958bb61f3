"""toolgate - command-line tools exposed as MCP procedures."""

__version__ = "0.3.0"
