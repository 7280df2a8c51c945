"""blitzgen configuration.

Typed settings for where the template comes from and how long the tool is
willing to wait on the network and on external commands.  Values come from
field defaults, environment variables and CLI flags, and pydantic validates
them at construction time.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


DEFAULT_TEMPLATE_REPO = "CarboxyDev/blitzpack"
DEFAULT_TEMPLATE_REF = "main"


class Config(BaseModel):
    """Global blitzgen configuration.

    Created once by the CLI entry point (usually via :meth:`from_env`) and
    passed to the generator and the bootstrap helpers.
    """

    template_repo: str = Field(
        default=DEFAULT_TEMPLATE_REPO,
        pattern=r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$",
        description="GitHub owner/repo of the template",
    )
    template_ref: str = Field(default=DEFAULT_TEMPLATE_REF, min_length=1)
    template_archive: Path | None = Field(
        default=None,
        description="Local .tar.gz snapshot used instead of downloading",
    )
    download_timeout: float = Field(
        default=60.0, ge=5, description="Overall read timeout for the download in seconds"
    )
    connect_timeout: float = Field(default=10.0, gt=0)
    command_timeout: int = Field(
        default=600, ge=10, description="Timeout for git/pnpm/docker commands in seconds"
    )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def tarball_url(self) -> str:
        """Codeload URL of the gzipped tarball for ``template_repo@template_ref``."""
        return f"https://codeload.github.com/{self.template_repo}/tar.gz/{self.template_ref}"

    @property
    def template_locator(self) -> str:
        """Human-readable template coordinate, e.g. ``github:owner/repo#main``."""
        if self.template_archive is not None:
            return str(self.template_archive)
        return f"github:{self.template_repo}#{self.template_ref}"

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            BLITZGEN_TEMPLATE_REPO, BLITZGEN_TEMPLATE_REF,
            BLITZGEN_TEMPLATE_ARCHIVE, BLITZGEN_DOWNLOAD_TIMEOUT,
            BLITZGEN_COMMAND_TIMEOUT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("BLITZGEN_TEMPLATE_REPO"):
            kwargs["template_repo"] = os.environ["BLITZGEN_TEMPLATE_REPO"]
        if os.environ.get("BLITZGEN_TEMPLATE_REF"):
            kwargs["template_ref"] = os.environ["BLITZGEN_TEMPLATE_REF"]
        if os.environ.get("BLITZGEN_TEMPLATE_ARCHIVE"):
            kwargs["template_archive"] = Path(os.environ["BLITZGEN_TEMPLATE_ARCHIVE"])
        if os.environ.get("BLITZGEN_DOWNLOAD_TIMEOUT"):
            kwargs["download_timeout"] = float(os.environ["BLITZGEN_DOWNLOAD_TIMEOUT"])
        if os.environ.get("BLITZGEN_COMMAND_TIMEOUT"):
            kwargs["command_timeout"] = int(os.environ["BLITZGEN_COMMAND_TIMEOUT"])
        return cls(**kwargs)
