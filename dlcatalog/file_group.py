"""Group a flat file list into release tracks and pick each track's latest file.

A group is identified by its slug, the file name up to the first '.'.
Within a group the files are sorted newest first by name, and the first one
is promoted to `latest_version`:

- If its name carries a `.YYYYMMDD.` date token, a clone with the token
  removed from the URL becomes the stable, version-agnostic download and the
  dated original stays in `older_versions`.
- Otherwise the file is the group's sole artifact: the clone keeps the URL
  and the original is dropped from `older_versions`.
"""

from __future__ import annotations

import logging
import posixpath
import re
from dataclasses import dataclass, field
from typing import Iterable, Union

from .file_ref import FileRef

logger = logging.getLogger(__name__)

DATE_TOKEN_RE = re.compile(r"\.\d{8}\.")
UNKNOWN_ORDER = 10000


@dataclass(frozen=True, slots=True)
class GroupInfo:
    title: str
    description: tuple[str, ...]
    order: int
    mirror_locally: bool = False


GROUP_REGISTRY: dict[str, GroupInfo] = {
    "osm": GroupInfo(
        title="OpenStreetMap as vector tiles",
        description=(
            'The full <a href="https://www.openstreetmap.org/">OpenStreetMap</a> planet as vector tilesets with zoom levels 0-14 in <a href="https://shortbread-tiles.org/schema/">Shortbread Schema</a>.',
            'Map Data © <a href="https://www.openstreetmap.org/copyright">OpenStreetMap Contributors</a> available under <a href="https://opendatacommons.org/licenses/odbl/">ODbL</a>',
        ),
        order=0,
        mirror_locally=True,
    ),
    "hillshade-vectors": GroupInfo(
        title="Hillshading as vector tiles",
        description=(
            'Hillshade vector tiles based on <a href="https://github.com/tilezen/joerd">Mapzen Jörð Terrain Tiles</a>.',
            'Map Data © <a href="https://github.com/tilezen/joerd/blob/master/docs/attribution.md">Mapzen Terrain Tiles, DEM Sources</a>',
        ),
        order=10,
    ),
    "landcover-vectors": GroupInfo(
        title="Landcover as vector tiles",
        description=(
            'Landcover vector tiles based on <a href="https://esa-worldcover.org/en/data-access">ESA Worldcover 2021</a>.',
            'Map Data © <a href="https://esa-worldcover.org/en/data-access">ESA WorldCover project 2021</a> / Contains modified Copernicus Sentinel data (2021) processed by ESA WorldCover consortium, available under <a href="http://creativecommons.org/licenses/by/4.0/"> CC-BY 4.0 International</a>',
        ),
        order=20,
    ),
    "bathymetry-vectors": GroupInfo(
        title="Bathymetry as vector tiles",
        description=(
            'Bathymetry Vectors, derived from the <a href="https://www.gebco.net/data_and_products/historical_data_sets/#gebco_2021">GEBCO 2021 Grid</a>, made with <a href="https://www.naturalearthdata.com/">NaturalEarth</a> by <a href="https://opendem.info">OpenDEM</a>',
        ),
        order=30,
    ),
    "satellite": GroupInfo(
        title="Satellite imagery (Beta)",
        description=("Satellite imagery from various sources.",),
        order=40,
    ),
}

UNKNOWN_GROUP = GroupInfo(title="???", description=(), order=UNKNOWN_ORDER)


@dataclass(frozen=True, slots=True)
class DatedPromotion:
    """Latest file had a date token; its URL was stripped to `stripped_url`."""

    stripped_url: str


@dataclass(frozen=True, slots=True)
class SoleArtifact:
    """Latest file had no date token and lives only as `latest_version`."""


Promotion = Union[DatedPromotion, SoleArtifact]


@dataclass(slots=True)
class FileGroup:
    slug: str
    title: str
    description: str
    order: int
    mirror_locally: bool = False
    latest_version: FileRef | None = None
    older_versions: list[FileRef] = field(default_factory=list)

    def all_files(self) -> list[FileRef]:
        files = list(self.older_versions)
        if self.latest_version is not None:
            files.append(self.latest_version)
        return files

    def to_dict(self) -> dict[str, object]:
        return {
            "slug": self.slug,
            "title": self.title,
            "desc": self.description,
            "order": self.order,
            "local": self.mirror_locally,
            "latestFile": self.latest_version.to_dict() if self.latest_version else None,
            "olderFiles": [f.to_dict() for f in self.older_versions],
        }


def slug_of(display_name: str) -> str:
    """Text before the first '.' of the base name."""
    return posixpath.basename(display_name).split(".", 1)[0]


def lookup_group_info(slug: str, registry: dict[str, GroupInfo] | None = None) -> GroupInfo:
    """Registry entry for `slug`, or placeholder metadata for unknown slugs."""
    info = (GROUP_REGISTRY if registry is None else registry).get(slug)
    if info is None:
        logger.warning('Unknown group "%s"', slug)
        return UNKNOWN_GROUP
    return info


def decide_promotion(latest: FileRef) -> Promotion:
    # only the first date token is removed
    stripped, count = DATE_TOKEN_RE.subn(".", latest.public_path, count=1)
    if count:
        return DatedPromotion(stripped_url=stripped)
    return SoleArtifact()


def promote_latest(group: FileGroup) -> Promotion:
    """Sort the group's files newest first and set `latest_version`."""
    group.older_versions.sort(key=lambda f: f.display_name, reverse=True)
    newest = group.older_versions[0]
    promotion = decide_promotion(newest)
    latest = newest.clone()
    if isinstance(promotion, DatedPromotion):
        latest.set_public_path(promotion.stripped_url)
    else:
        group.older_versions.pop(0)
    group.latest_version = latest
    return promotion


def group_files(files: Iterable[FileRef], registry: dict[str, GroupInfo] | None = None) -> list[FileGroup]:
    """Partition files into groups ordered by the registry's display order."""
    groups: dict[str, FileGroup] = {}
    for file in files:
        slug = slug_of(file.display_name)
        group = groups.get(slug)
        if group is None:
            info = lookup_group_info(slug, registry)
            group = FileGroup(
                slug=slug,
                title=info.title,
                description="<br>".join(info.description),
                order=info.order,
                mirror_locally=info.mirror_locally,
            )
            groups[slug] = group
        group.older_versions.append(file)

    # sorted() is stable, so equal orders keep first-seen order
    group_list = sorted(groups.values(), key=lambda g: g.order)
    for group in group_list:
        promote_latest(group)
    return group_list
