"""Storage service for saved scrape results on the file system."""
import json
import os
import re
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List
from urllib.parse import urlparse

from pydantic import ValidationError

from ..config import settings
from ..models import ResourceResponse, StrategyIdentifier
from ..utils.logger import logger

URI_SCHEME = "scraped://"


class ResourceStorage:
    """Service for saving full scrape results so agents can read them later."""

    def __init__(self, base_path: Optional[Path] = None):
        """Initialize the storage service.

        Args:
            base_path: Base directory for storage. Defaults to settings.storage_path
        """
        self.base_path = base_path or settings.storage_path
        self._ensure_base_directory()

    def _ensure_base_directory(self) -> None:
        """Ensure the base storage directory exists."""
        self.base_path.mkdir(parents=True, exist_ok=True)

    def generate_resource_id(self) -> str:
        """Generate a unique resource ID with timestamp.

        Returns:
            Resource ID in format: YYYYMMDD_HHMMSS_{uuid}
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        unique_id = uuid.uuid4().hex[:8]
        return f"{timestamp}_{unique_id}"

    def build_uri(self, url: str, resource_id: str) -> str:
        """Build the resource URI for a scraped URL.

        Args:
            url: Scraped URL
            resource_id: The resource identifier

        Returns:
            URI in format: scraped://{host}{path}_{resource_id}
        """
        parsed = urlparse(url)
        location = re.sub(r"[^A-Za-z0-9._/-]", "_", f"{parsed.netloc}{parsed.path}".rstrip("/"))
        return f"{URI_SCHEME}{location}_{resource_id}"

    def get_resource_path(self, resource_id: str) -> Path:
        """Get the file path for a resource.

        Args:
            resource_id: The resource identifier

        Returns:
            Path to the resource file
        """
        if not re.fullmatch(r"[A-Za-z0-9_]+", resource_id):
            raise ValueError(f"Invalid resource id: {resource_id}")
        return self.base_path / f"{resource_id}.json"

    def write(
        self,
        url: str,
        text: str,
        strategy: Optional[StrategyIdentifier] = None,
        extract: Optional[str] = None,
        mime_type: str = "text/markdown",
    ) -> ResourceResponse:
        """Save a scrape result.

        Args:
            url: Scraped URL
            text: Full (unbounded) content
            strategy: Strategy that served the content
            extract: Extraction query, if the text is an extraction answer
            mime_type: MIME type of the text

        Returns:
            The saved resource
        """
        resource_id = self.generate_resource_id()
        resource = ResourceResponse(
            resource_id=resource_id,
            uri=self.build_uri(url, resource_id),
            url=url,
            mime_type=mime_type,
            strategy=strategy,
            extract=extract,
            created_at=datetime.now(),
            text=text,
        )

        self._write_atomic(self.get_resource_path(resource_id), resource.model_dump(mode="json"))

        return resource

    def _write_atomic(self, file_path: Path, data: Dict[str, Any]) -> None:
        """Write JSON via a temp file and an atomic rename so readers never see a partial file."""
        fd, temp_path = tempfile.mkstemp(dir=file_path.parent, prefix=f".{file_path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, default=str)
            os.replace(temp_path, file_path)
        except BaseException:
            Path(temp_path).unlink(missing_ok=True)
            raise

    def load_json(self, resource_id: str) -> Optional[Dict[str, Any]]:
        """Load a resource file.

        Args:
            resource_id: The resource identifier

        Returns:
            Loaded data or None if file doesn't exist
        """
        file_path = self.get_resource_path(resource_id)

        if not file_path.exists():
            return None

        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def get(self, resource_id: str) -> Optional[ResourceResponse]:
        """Load a saved resource by ID."""
        data = self.load_json(resource_id)
        return ResourceResponse(**data) if data else None

    def read(self, uri: str) -> Optional[ResourceResponse]:
        """Load a saved resource by URI.

        Args:
            uri: scraped:// URI returned by write()

        Returns:
            The resource or None if not found
        """
        if not uri.startswith(URI_SCHEME):
            raise ValueError(f"Invalid resource URI: {uri}")
        match = re.search(r"_(\d{8}_\d{6}_[0-9a-f]{8})$", uri)
        if not match:
            return None
        resource = self.get(match.group(1))
        return resource if resource and resource.uri == uri else None

    def list(self) -> List[ResourceResponse]:
        """List all resources without their text.

        Returns:
            Resources sorted by creation time (newest first)
        """
        if not self.base_path.exists():
            return []

        resource_ids = [
            f.stem
            for f in self.base_path.iterdir()
            if f.is_file() and f.suffix == ".json" and not f.name.startswith(".")
        ]

        resources = []
        for resource_id in resource_ids:
            try:
                resource = self.get(resource_id)
            except (OSError, ValueError, TypeError, ValidationError) as e:
                # Unreadable or foreign files in the directory are not resources
                logger.warning(f"[Storage] Skipping unreadable resource file {resource_id}.json: {e}")
                continue
            if resource:
                resources.append(resource.model_copy(update={"text": None}))

        resources.sort(key=lambda r: r.created_at, reverse=True)
        return resources

    def find_by_url_and_extract(
        self, url: str, extract: Optional[str] = None
    ) -> List[ResourceResponse]:
        """Find saved results for a URL and extraction query.

        Args:
            url: Scraped URL
            extract: Extraction query; None matches only un-extracted results

        Returns:
            Matching resources, newest first
        """
        matches = []
        for summary in self.list():
            if summary.url == url and summary.extract == extract:
                resource = self.get(summary.resource_id)
                if resource:
                    matches.append(resource)
        return matches

    def delete(self, resource_id: str) -> bool:
        """Delete a resource.

        Args:
            resource_id: The resource identifier

        Returns:
            True if deleted successfully, False if resource didn't exist
        """
        file_path = self.get_resource_path(resource_id)
        if not file_path.exists():
            return False
        file_path.unlink()
        return True


# Global storage service instance
resource_storage = ResourceStorage()
