"""Google Drive MCP server.

Exposes Drive files as ``gdrive:///<fileId>`` resources and provides tools
for searching Drive, reading files, and reading Google Sheets values.

Credentials come from CredentialProvider: resource requests use the quiet
path only, tool calls may fall back to interactive authorization, and a
background task keeps OAuth tokens fresh.
"""

import asyncio
import json
import logging
import sys
from typing import Any

import httpx
from dotenv import load_dotenv
from google.auth.transport.requests import Request
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool
from pydantic import AnyUrl

from gdrive_mcp.auth import AuthenticationError, AuthMode, CredentialProvider
from gdrive_mcp.auth.scheduler import TokenRefreshScheduler
from gdrive_mcp.server.content import (
    binary_placeholder,
    export_mime_type,
    is_google_apps_file,
    is_text_mime_type,
    truncate_base64_content,
)

logger = logging.getLogger(__name__)

DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
SHEETS_API_BASE = "https://sheets.googleapis.com/v4"

RESOURCE_URI_PREFIX = "gdrive:///"
RESOURCE_PAGE_SIZE = 10

TOOLS = [
    Tool(
        name="gdrive_search",
        description="Search for files in Google Drive",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search terms, or a Drive query such as \"name contains 'x'\"",
                },
                "pageSize": {
                    "type": "integer",
                    "description": "Number of results per page (default: 10, max: 100)",
                    "default": 10,
                },
                "pageToken": {
                    "type": "string",
                    "description": "Token for the next page of results",
                },
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="gdrive_read_file",
        description="Read contents of a file from Google Drive",
        inputSchema={
            "type": "object",
            "properties": {
                "fileId": {
                    "type": "string",
                    "description": "ID of the file to read",
                },
            },
            "required": ["fileId"],
        },
    ),
    Tool(
        name="gsheets_read",
        description="Read values from a Google Spreadsheet",
        inputSchema={
            "type": "object",
            "properties": {
                "spreadsheetId": {
                    "type": "string",
                    "description": "ID of the spreadsheet",
                },
                "ranges": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "A1 ranges such as \"Sheet1!A1:B10\" (default: every sheet)",
                },
            },
            "required": ["spreadsheetId"],
        },
    ),
]


class GDriveServer:
    """MCP server for Google Drive and Google Sheets.

    Attributes:
        server: MCP Server instance.
        provider: Credential façade shared by every outbound call.
    """

    def __init__(self, provider: CredentialProvider | None = None) -> None:
        """Initialize the Google Drive MCP server."""
        self.server = Server("gdrive-mcp")
        self.provider = provider or CredentialProvider()
        self._http_client: httpx.AsyncClient | None = None
        self._scheduler: TokenRefreshScheduler | None = None
        self._setup_handlers()

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling.

        Returns:
            Shared httpx.AsyncClient instance.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Stop background refresh and release the HTTP client."""
        if self._scheduler is not None:
            await self._scheduler.stop()
            self._scheduler = None
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _setup_handlers(self) -> None:
        """Register MCP handlers."""

        @self.server.list_resources()
        async def list_resources() -> list[Resource]:
            """List Drive files as resources."""
            await self.provider.ensure_auth_quietly()
            return await self._list_resources()

        @self.server.read_resource()
        async def read_resource(uri: AnyUrl) -> list[ReadResourceContents]:
            """Read a Drive file resource."""
            await self.provider.ensure_auth_quietly()
            return await self._read_resource(str(uri))

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return list of available tools."""
            return TOOLS

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
            """Handle tool calls."""
            try:
                await self.provider.ensure_auth()
                result = await self._dispatch_tool(name, arguments or {})
                return [TextContent(type="text", text=json.dumps(result, indent=2))]
            except Exception as e:
                logger.exception(f"Error calling tool {name}")
                return [
                    TextContent(
                        type="text",
                        text=json.dumps({"error": str(e)}, indent=2),
                    )
                ]

    async def _get_access_token(self) -> str:
        """Get an access token from the installed credentials.

        Returns:
            Bearer token string.

        Raises:
            RuntimeError: If no credentials are available.
        """
        credentials = self.provider.holder.current()
        if credentials is None:
            credentials = await self.provider.ensure_auth_quietly()
        if credentials is None:
            raise RuntimeError("Not authenticated. Run 'gdrive-mcp auth' to authorize access.")

        if not credentials.valid:
            if self.provider.get_auth_type() == AuthMode.SERVICE_ACCOUNT:
                # Service accounts start without a token and renew on demand
                loop = asyncio.get_event_loop()
                await loop.run_in_executor(None, credentials.refresh, Request())
            else:
                # OAuth refreshes go through the manager so they are locked and persisted
                credentials = await self.provider.ensure_auth_quietly()
                if credentials is None:
                    raise RuntimeError(
                        "Stored credentials expired. Run 'gdrive-mcp auth' to re-authorize."
                    )

        token: str = credentials.token
        return token

    async def _make_raw_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Make an authenticated HTTP request returning raw response.

        Args:
            method: HTTP method.
            url: Full URL to request.
            params: Optional query parameters.

        Returns:
            Raw httpx.Response object.

        Raises:
            httpx.HTTPStatusError: If the request fails.
        """
        access_token = await self._get_access_token()
        client = await self._get_http_client()

        response = await client.request(
            method=method,
            url=url,
            params=params,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        response.raise_for_status()
        return response

    async def _make_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated request and decode the JSON body."""
        response = await self._make_raw_request(method, url, params=params)
        result: dict[str, Any] = response.json()
        return result

    async def _dispatch_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """Dispatch tool call to appropriate handler.

        Raises:
            ValueError: If tool name is not recognized.
        """
        handlers = {
            "gdrive_search": self._search_files,
            "gdrive_read_file": self._read_file,
            "gsheets_read": self._read_sheet,
        }

        handler = handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown tool: {name}")
        return await handler(arguments)

    # =========================================================================
    # Resources
    # =========================================================================

    async def _list_resources(self) -> list[Resource]:
        params = {
            "pageSize": RESOURCE_PAGE_SIZE,
            "fields": "nextPageToken, files(id, name, mimeType, driveId, parents)",
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        response = await self._make_request("GET", f"{DRIVE_API_BASE}/files", params=params)

        return [
            Resource(
                uri=f"{RESOURCE_URI_PREFIX}{item['id']}",
                name=item.get("name", item["id"]),
                mimeType=item.get("mimeType"),
            )
            for item in response.get("files", [])
        ]

    async def _read_resource(self, uri: str) -> list[ReadResourceContents]:
        if not uri.startswith(RESOURCE_URI_PREFIX):
            raise ValueError(f"Invalid resource URI: {uri}")

        file_id = uri[len(RESOURCE_URI_PREFIX) :]
        logger.info(f"Attempting to read resource: {file_id}")
        contents = await self._fetch_file(file_id)

        if "text" in contents:
            return [ReadResourceContents(content=contents["text"], mime_type=contents["mimeType"])]
        return [ReadResourceContents(content=contents["blob"], mime_type="text/plain")]

    # =========================================================================
    # Drive
    # =========================================================================

    def _normalize_drive_query(self, query: str) -> str:
        """Wrap bare search terms in a fullText query.

        Queries already using Drive operators are passed through unchanged.
        """
        operators = ["contains", "=", "!=", "<", ">", " in ", " has ", " not "]

        query_lower = query.lower()
        if any(op in query_lower for op in operators):
            return query

        escaped_query = query.replace("\\", "\\\\").replace("'", "\\'")
        return f"fullText contains '{escaped_query}'"

    async def _search_files(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Search Google Drive files.

        Args:
            arguments: Tool arguments with query, pageSize and pageToken.

        Returns:
            Matching files and the token for the next page, if any.
        """
        query = arguments.get("query", "")
        page_size = min(int(arguments.get("pageSize", 10)), 100)

        params: dict[str, Any] = {
            "q": self._normalize_drive_query(query),
            "pageSize": page_size,
            "fields": "nextPageToken, files(id, name, mimeType, modifiedTime, size)",
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if arguments.get("pageToken"):
            params["pageToken"] = arguments["pageToken"]

        response = await self._make_request("GET", f"{DRIVE_API_BASE}/files", params=params)

        files = [
            {
                "id": item.get("id"),
                "name": item.get("name"),
                "mimeType": item.get("mimeType"),
                "modifiedTime": item.get("modifiedTime"),
                "size": item.get("size"),
            }
            for item in response.get("files", [])
        ]

        return {
            "files": files,
            "count": len(files),
            "nextPageToken": response.get("nextPageToken"),
        }

    async def _fetch_file(self, file_id: str) -> dict[str, Any]:
        """Download or export a Drive file.

        Returns:
            Dict with name, mimeType and either text or a binary placeholder in blob.
        """
        meta_url = f"{DRIVE_API_BASE}/files/{file_id}"
        metadata = await self._make_request(
            "GET",
            meta_url,
            params={"fields": "mimeType,name,parents,driveId", "supportsAllDrives": True},
        )
        name = metadata.get("name") or file_id
        source_mime_type = metadata.get("mimeType") or "application/octet-stream"

        if is_google_apps_file(source_mime_type):
            mime_type = export_mime_type(source_mime_type)
            response = await self._make_raw_request(
                "GET",
                f"{meta_url}/export",
                params={"mimeType": mime_type},
            )
        else:
            mime_type = source_mime_type
            response = await self._make_raw_request(
                "GET",
                meta_url,
                params={"alt": "media", "supportsAllDrives": True},
            )

        if is_text_mime_type(mime_type):
            text = response.content.decode("utf-8", errors="replace")
            return {"name": name, "mimeType": mime_type, "text": truncate_base64_content(text)}

        return {
            "name": name,
            "mimeType": mime_type,
            "blob": binary_placeholder(len(response.content)),
        }

    async def _read_file(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Read a Drive file.

        Args:
            arguments: Tool arguments with fileId.

        Returns:
            File name, MIME type and content.
        """
        file_id = arguments["fileId"]
        contents = await self._fetch_file(file_id)

        return {
            "id": file_id,
            "name": contents["name"],
            "mimeType": contents["mimeType"],
            "content": contents.get("text") or contents.get("blob") or "No content available",
        }

    # =========================================================================
    # Sheets
    # =========================================================================

    async def _read_sheet(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Read values from a Google Spreadsheet.

        Args:
            arguments: Tool arguments with spreadsheetId and optional ranges.

        Returns:
            One entry per range with its values.
        """
        spreadsheet_id = arguments["spreadsheetId"]
        ranges: list[str] = list(arguments.get("ranges") or [])

        if not ranges:
            spreadsheet = await self._make_request(
                "GET",
                f"{SHEETS_API_BASE}/spreadsheets/{spreadsheet_id}",
                params={"fields": "sheets.properties.title"},
            )
            # Quote sheet names for spaces/special chars
            ranges = [
                "'{}'".format(sheet["properties"]["title"].replace("'", "''"))
                for sheet in spreadsheet.get("sheets", [])
            ]

        if not ranges:
            return {"spreadsheetId": spreadsheet_id, "valueRanges": [], "count": 0}

        response = await self._make_request(
            "GET",
            f"{SHEETS_API_BASE}/spreadsheets/{spreadsheet_id}/values:batchGet",
            params={"ranges": ranges, "valueRenderOption": "FORMATTED_VALUE"},
        )

        value_ranges = []
        for item in response.get("valueRanges", []):
            values = item.get("values", [])
            value_ranges.append(
                {
                    "range": item.get("range"),
                    "values": values,
                    "rowCount": len(values),
                }
            )

        return {
            "spreadsheetId": spreadsheet_id,
            "valueRanges": value_ranges,
            "count": len(value_ranges),
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self) -> None:
        """Authenticate, then run the MCP server using stdio transport.

        Raises:
            AuthenticationError: If no credentials could be obtained at startup.
        """
        logger.info("Starting server")
        auth_type = self.provider.get_auth_type()
        logger.info(f"Using authentication method: {auth_type.value}")

        # May open the browser when nothing usable is stored
        await self.provider.ensure_auth()

        try:
            if auth_type == AuthMode.OAUTH:
                self._scheduler = self.provider.setup_token_refresh()

            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()


def main() -> None:
    """Entry point for the Google Drive MCP server."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    server = GDriveServer()
    try:
        asyncio.run(server.run())
    except AuthenticationError as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
