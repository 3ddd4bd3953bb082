"""
Turns a requested range or dist-tag into a concrete version record.
"""

from .error_handling import log_resolution_error
from .errors import ResolutionError
from .models import PackageMetadata, VersionRecord
from .structured_logging import get_builder_logger
from .versioning import max_satisfying

DEFAULT_RANGE = "latest"


def resolve_version(metadata: PackageMetadata, range_spec: str = DEFAULT_RANGE) -> VersionRecord:
    """
    Pick the greatest published version satisfying ``range_spec``.

    A range naming a dist-tag is first replaced by the tag's version.

    Raises:
        ResolutionError: nothing in ``metadata`` satisfies the range
    """
    look_for = metadata.dist_tags.get(range_spec, range_spec)
    selected = max_satisfying(metadata.available_versions, look_for)
    record = metadata.versions.get(selected) if selected is not None else None

    if record is None:
        log_resolution_error(
            f"No version of {metadata.name} satisfies {range_spec}",
            "resolver",
            "resolve_version",
            package_name=metadata.name,
            range=range_spec,
            available_count=len(metadata.available_versions),
        )
        raise ResolutionError(metadata.name, range_spec, metadata.available_versions)

    get_builder_logger().debug(
        "version_resolved",
        package_name=metadata.name,
        requested=range_spec,
        resolved=record.version,
    )
    return record
