"""JSON persistence for the OAuth credential record.

Storage Location: <creds dir>/.gdrive-server-credentials.json

The file holds a single CredentialRecord and is overwritten wholesale on
every refresh or fresh authorization. Writes go through a temporary file in
the same directory followed by os.replace(), so readers see either the old
record or the new one.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from gdrive_mcp.auth.exceptions import CredentialFileNotFoundError, MalformedCredentialsError
from gdrive_mcp.auth.models import CredentialRecord, TokenStatus

logger = logging.getLogger(__name__)


class CredentialStore:
    """Reads and writes the persisted OAuth credential file.

    Attributes:
        path: Path to the credential JSON file.

    Example:
        ```python
        store = CredentialStore(Path("~/.gdrive-mcp/.gdrive-server-credentials.json"))
        store.write(CredentialRecord(access_token="abc", expiry_date=1735689599000))
        record = store.read()
        ```
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check whether the credential file is present."""
        return self.path.exists()

    def _ensure_credentials_dir(self) -> None:
        """Create credentials directory with secure permissions if needed."""
        creds_dir = self.path.parent
        if not creds_dir.exists():
            creds_dir.mkdir(parents=True, mode=0o700)
            logger.info(f"Created credentials directory at {creds_dir}")

    def read(self) -> CredentialRecord:
        """Load the persisted record.

        Returns:
            The parsed CredentialRecord.

        Raises:
            CredentialFileNotFoundError: If the file does not exist.
            MalformedCredentialsError: If the file cannot be parsed.
        """
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise CredentialFileNotFoundError(self.path) from e
        except (OSError, ValueError) as e:
            raise MalformedCredentialsError(self.path, str(e)) from e

        try:
            return CredentialRecord.model_validate(data)
        except ValidationError as e:
            raise MalformedCredentialsError(self.path, str(e)) from e

    def write(self, record: CredentialRecord) -> None:
        """Replace the persisted record.

        Args:
            record: Record to persist.

        Raises:
            OSError: If the file cannot be written.
        """
        self._ensure_credentials_dir()
        content = json.dumps(record.model_dump(), indent=2)

        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=".tmp_", suffix=".json", text=True
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            # Owner read/write only, applied before the file becomes visible
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get_status(self) -> TokenStatus:
        """Get the status of the persisted record.

        Returns:
            TokenStatus describing the file and token validity.
        """
        try:
            record = self.read()
        except CredentialFileNotFoundError:
            return TokenStatus.MISSING
        except MalformedCredentialsError:
            return TokenStatus.INVALID
        return record.status()

    def clear(self) -> bool:
        """Delete the credential file.

        Returns:
            True if a file was removed, False if none existed.
        """
        if not self.path.exists():
            return False
        self.path.unlink()
        return True
