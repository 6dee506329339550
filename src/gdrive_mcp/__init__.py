"""Google Drive MCP Server.

Expose Google Drive files and Google Sheets to MCP clients, with OAuth or
service-account authentication and background token refresh.
"""

from gdrive_mcp.__version__ import __version__

__all__ = ["__version__"]
