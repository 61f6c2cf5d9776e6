"""Google Drive API wrapper."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

from ..errors import ApiError
from .base import ServiceClient, path_segment

FILE_FIELDS = "id,name,mimeType,size,modifiedTime,description,webViewLink"
FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
GOOGLE_APPS_PREFIX = "application/vnd.google-apps."

# Export formats for native Google files, which have no binary content
EXPORT_FORMATS = {
    "application/vnd.google-apps.document": ("application/pdf", ".pdf"),
    "application/vnd.google-apps.spreadsheet": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        ".xlsx",
    ),
    "application/vnd.google-apps.presentation": (
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        ".pptx",
    ),
    "application/vnd.google-apps.drawing": ("image/png", ".png"),
}


@dataclass
class DriveFile:
    id: str
    name: str
    mime_type: str = ""
    size: int = 0
    modified_time: str = ""
    description: str = ""
    web_view_link: str = ""

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


@dataclass
class FilePage:
    files: list[DriveFile]
    next_page_token: Optional[str] = None


@dataclass
class Permission:
    id: str
    type: str
    role: str
    email: str = ""


@dataclass
class DownloadResult:
    path: Path
    size: int


def parse_file(data: dict[str, Any]) -> DriveFile:
    return DriveFile(
        id=data["id"],
        name=data.get("name", ""),
        mime_type=data.get("mimeType", ""),
        size=int(data.get("size", 0) or 0),
        modified_time=data.get("modifiedTime", ""),
        description=data.get("description", ""),
        web_view_link=data.get("webViewLink", ""),
    )


def safe_filename(name: str, fallback: str) -> str:
    """Reduce a remote file name to a single path component."""
    base = Path(name.replace("\\", "/")).name if name else ""
    if base in ("", ".", ".."):
        return fallback
    return base


def quote_query(value: str) -> str:
    """Escape a value for a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveService(ServiceClient):
    """Drive operations for one account."""

    BASE_URL = "https://www.googleapis.com/drive/v3"

    def __init__(self, session, email: str, downloads_dir: Optional[Path] = None):
        super().__init__(session, email)
        self.downloads_dir = downloads_dir or Path.cwd()

    def _list(self, q: str, max_results: int, page_token: Optional[str]) -> FilePage:
        data = self._get(
            "/files",
            {
                "q": q,
                "pageSize": max_results,
                "pageToken": page_token,
                "fields": "nextPageToken,files(id,name,mimeType,size,modifiedTime)",
                "orderBy": "modifiedTime desc",
            },
        )
        return FilePage(
            [parse_file(item) for item in data.get("files", [])],
            data.get("nextPageToken"),
        )

    def list_files(
        self,
        folder_id: Optional[str] = None,
        max_results: int = 20,
        page_token: Optional[str] = None,
        query: Optional[str] = None,
    ) -> FilePage:
        """
        List files in a folder (default: My Drive root).

        Args:
            folder_id: Parent folder id
            max_results: Page size
            page_token: Token from a previous page
            query: Extra Drive query clause, ANDed with the folder filter
        """
        clauses = [f"'{quote_query(folder_id or 'root')}' in parents", "trashed = false"]
        if query:
            clauses.append(f"({query})")
        return self._list(" and ".join(clauses), max_results, page_token)

    def search(
        self, query: str, max_results: int = 20, page_token: Optional[str] = None
    ) -> FilePage:
        """Full-text search across names and content."""
        q = f"fullText contains '{quote_query(query)}' and trashed = false"
        return self._list(q, max_results, page_token)

    def get_file(self, file_id: str) -> DriveFile:
        return parse_file(self._get(f"/files/{path_segment(file_id)}", {"fields": FILE_FIELDS}))

    def list_permissions(self, file_id: str) -> list[Permission]:
        data = self._get(
            f"/files/{path_segment(file_id)}/permissions",
            {"fields": "permissions(id,type,role,emailAddress)"},
        )
        return [
            Permission(
                id=p["id"],
                type=p.get("type", ""),
                role=p.get("role", ""),
                email=p.get("emailAddress", ""),
            )
            for p in data.get("permissions", [])
        ]

    def download(self, file_id: str, dest: Optional[Union[str, Path]] = None) -> DownloadResult:
        """
        Download a file, exporting native Google files to an office format.

        Args:
            file_id: Drive file id
            dest: Target file or directory (default: downloads directory). A
                path ending in a separator is a directory even if it does not
                exist yet.

        Returns:
            DownloadResult with the written path and its size
        """
        meta = self.get_file(file_id)
        name = safe_filename(meta.name, file_id)
        path = f"/files/{path_segment(file_id)}"

        if meta.mime_type in EXPORT_FORMATS:
            export_type, extension = EXPORT_FORMATS[meta.mime_type]
            if not name.endswith(extension):
                name += extension
            response = self._request(
                "GET", f"{path}/export", params={"mimeType": export_type}, stream=True
            )
        elif meta.mime_type.startswith(GOOGLE_APPS_PREFIX):
            raise ApiError(f"Files of type {meta.mime_type} cannot be downloaded")
        else:
            response = self._request("GET", path, params={"alt": "media"}, stream=True)

        if dest is None:
            target = self.downloads_dir / name
        else:
            target = Path(dest)
            if target.is_dir() or str(dest).endswith(("/", os.sep)):
                target = target / name
        target.parent.mkdir(parents=True, exist_ok=True)

        size = 0
        with open(target, "wb") as f:
            for chunk in response.iter_content(chunk_size=64 * 1024):
                f.write(chunk)
                size += len(chunk)

        return DownloadResult(path=target, size=size)

    def file_url(self, file_id: str) -> str:
        return f"https://drive.google.com/open?id={file_id}"
