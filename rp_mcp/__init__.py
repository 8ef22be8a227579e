"""ReportPortal MCP server: ReportPortal tools and prompts over JSON-RPC."""

__version__ = "1.0.0"
