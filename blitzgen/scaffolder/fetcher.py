"""Template download and extraction.

Downloads a gzipped tarball snapshot of the template repository from GitHub
with ``httpx``, unpacks it into the target directory (dropping the archive's
single top-level folder) and removes the paths that belong to the template
repository itself rather than to any generated project.
"""

from __future__ import annotations

import asyncio
import io
import tarfile
from pathlib import Path, PurePosixPath

import httpx

from blitzgen.config import Config
from blitzgen.errors import FetchError
from blitzgen.utils import remove_path


# Never part of a generated project, whatever features are selected.
POST_DOWNLOAD_EXCLUDES: tuple[str, ...] = (
    "create-blitzpack",
    ".github",
    "apps/marketing",
    "Dockerfile",
    "docker-compose.prod.yml",
)


class TemplateFetcher:
    """Populates a directory with a fresh copy of the template.

    Args:
        config: Supplies the template coordinate, timeouts and an optional
            local archive that replaces the download.
        transport: Optional ``httpx`` transport, used by tests to serve the
            tarball from memory.
    """

    def __init__(
        self,
        config: Config | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or Config()
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.download_timeout, connect=self.config.connect_timeout),
            follow_redirects=True,
            transport=self.transport,
        )

    # -- Public API --------------------------------------------------------

    async def fetch(self, target_dir: str | Path) -> Path:
        """Download, extract and clean the template into *target_dir*.

        Raises:
            FetchError: The snapshot could not be retrieved or unpacked.
        """
        if self.config.template_archive is not None:
            data = await self.read_archive(self.config.template_archive)
        else:
            data = await self.download()
        target = Path(target_dir)
        await asyncio.to_thread(extract_archive, data, target)
        await asyncio.to_thread(remove_post_download_excludes, target)
        return target

    async def download(self) -> bytes:
        """Return the raw tarball bytes for the configured repository and ref."""
        url = self.config.tarball_url
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.TimeoutException as exc:
            raise FetchError(
                f"Timed out downloading template after {self.config.download_timeout:g}s",
                source=url,
            ) from exc
        except httpx.HTTPError as exc:
            raise FetchError(f"Cannot download template: {exc}", source=url) from exc

        if response.status_code == 404:
            raise FetchError(
                f"Template repository or ref not found: {self.config.template_locator}",
                source=url,
            )
        if response.is_error:
            raise FetchError(
                f"Template download failed with HTTP {response.status_code}", source=url
            )
        if not response.content:
            raise FetchError("Template download returned an empty body", source=url)
        return response.content

    @staticmethod
    async def read_archive(path: str | Path) -> bytes:
        """Read a local template tarball."""
        archive = Path(path)
        try:
            return await asyncio.to_thread(archive.read_bytes)
        except OSError as exc:
            raise FetchError(f"Cannot read template archive: {exc}", source=str(archive)) from exc


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_archive(data: bytes, target_dir: Path) -> int:
    """Unpack a ``.tar.gz`` snapshot into *target_dir*.

    The first path component of every member (``<repo>-<ref>/``) is
    stripped.  Members that would land outside *target_dir* and links that
    point outside it are refused.  Device files and FIFOs are ignored.

    Returns:
        Number of regular files written.

    Raises:
        FetchError: The archive is corrupt or a member could not be written.
    """
    root = Path(target_dir).resolve()
    written = 0
    try:
        root.mkdir(parents=True, exist_ok=True)
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            for member in tar:
                relative = _strip_top_level(member.name)
                if relative is None:
                    continue
                destination = _safe_destination(root, relative)
                if member.isdir():
                    destination.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    with source, open(destination, "wb") as handle:
                        handle.write(source.read())
                    if member.mode & 0o111:
                        destination.chmod(0o755)
                    written += 1
                elif member.issym():
                    link_target = (destination.parent / member.linkname).resolve()
                    if not link_target.is_relative_to(root):
                        raise FetchError(f"Archive link escapes target: {member.name}")
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    if destination.is_symlink() or destination.exists():
                        destination.unlink()
                    destination.symlink_to(member.linkname)
    except (tarfile.TarError, EOFError) as exc:
        raise FetchError(f"Template archive is corrupt: {exc}") from exc
    except OSError as exc:
        raise FetchError(f"Cannot extract template into {root}: {exc}") from exc

    if written == 0:
        raise FetchError("Template archive contained no files")
    return written


def _strip_top_level(name: str) -> PurePosixPath | None:
    parts = PurePosixPath(name).parts
    if len(parts) <= 1:
        return None
    return PurePosixPath(*parts[1:])


def _safe_destination(root: Path, relative: PurePosixPath) -> Path:
    if relative.is_absolute() or ".." in relative.parts:
        raise FetchError(f"Archive member escapes target: {relative}")
    destination = (root / relative).resolve()
    if not destination.is_relative_to(root):
        raise FetchError(f"Archive member escapes target: {relative}")
    return destination


def remove_post_download_excludes(target_dir: Path) -> list[str]:
    """Delete the repository-only paths; returns the ones that existed."""
    removed: list[str] = []
    for rel in POST_DOWNLOAD_EXCLUDES:
        if remove_path(Path(target_dir) / rel):
            removed.append(rel)
    return removed
