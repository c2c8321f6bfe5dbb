from airsspec.infrastructure.artifacts.catalog import ArtifactCatalog
from airsspec.infrastructure.artifacts.frontmatter import (
    extract_body,
    extract_frontmatter,
    parse_frontmatter,
)
from airsspec.infrastructure.artifacts.validators import FrontmatterValidator, validators_by_type

__all__ = [
    "ArtifactCatalog",
    "FrontmatterValidator",
    "validators_by_type",
    "extract_frontmatter",
    "extract_body",
    "parse_frontmatter",
]
