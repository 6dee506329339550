"""MCP server implementation for Google Drive.

Resources:
- gdrive:///<fileId> for every listed Drive file

Tools (3):
- gdrive_search: full-text search across Drive
- gdrive_read_file: read or export a file as text
- gsheets_read: read spreadsheet values

Transport: Stdio
Authentication: OAuth 2.0 or service account, with background token refresh
"""

from gdrive_mcp.server.gdrive_server import GDriveServer, main


def create_server() -> GDriveServer:
    """Create and configure a Google Drive MCP server.

    Returns:
        GDriveServer: Configured server instance ready to run.

    Example:
        >>> server = create_server()
        >>> asyncio.run(server.run())
    """
    return GDriveServer()


__all__ = ["create_server", "GDriveServer", "main"]
