"""Pydantic models for the GitHub release payload used to install yt-dlp.

Only the fields needed to pick and fetch a platform asset are kept; the rest
of the payload is ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from lyre_bot.domain.shared.types import NonEmptyStr


class ReleaseAsset(BaseModel):
    """A single downloadable file attached to a release."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: NonEmptyStr
    browser_download_url: NonEmptyStr


class ReleaseInfo(BaseModel):
    """Trimmed ``releases/latest`` response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    tag_name: str = ""
    assets: list[ReleaseAsset] = Field(default_factory=list)

    def find_asset(self, name: str) -> ReleaseAsset | None:
        return next((asset for asset in self.assets if asset.name == name), None)
