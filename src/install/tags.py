"""Capability parsing from feed tags.

Gallery packages advertise what they contain through tag prefixes, e.g.
``PSCommand_Get-Thing`` or ``PSDscResource_xFile``. ``parse_tags`` is a pure
function over the tag list so it can be tested with literal tags.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union

from constants import PackageKinds

INCLUDE_PREFIXES = {
    "PSDscResource_": "DscResource",
    "PSCommand_": "Command",
    "PSFunction_": "Function",
    "PSRoleCapability_": "RoleCapability",
}

# Tags that carry no information worth keeping in the descriptor
_DROPPED_PREFIXES = ("PSWorkflow_", "PSCmdlet_", "PSIncludes_")
_KIND_TAGS = {"PSModule": PackageKinds.MODULE.value, "PSScript": PackageKinds.SCRIPT.value}


@dataclass
class TagInfo:
    """Structured view of a candidate's tags."""
    kind: Optional[str] = None
    includes: Dict[str, List[str]] = field(
        default_factory=lambda: {name: [] for name in INCLUDE_PREFIXES.values()}
    )
    filtered_tags: List[str] = field(default_factory=list)

    @property
    def commands(self) -> List[str]:
        return self.includes["Command"]


def split_tags(tags: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize a space-separated string or an iterable into a tag list."""
    if tags is None:
        return []
    if isinstance(tags, str):
        return [t for t in tags.split() if t]
    result: List[str] = []
    for tag in tags:
        result.extend(t for t in str(tag).split() if t)
    return result


def parse_tags(tags: Union[str, Iterable[str], None]) -> TagInfo:
    """Split tags into kind, include lists and the remaining plain tags.

    A tag set carrying both ``PSModule`` and ``PSScript`` is a module.
    """
    info = TagInfo()
    seen_kinds = set()
    for tag in split_tags(tags):
        prefix = next((p for p in INCLUDE_PREFIXES if tag.startswith(p)), None)
        if prefix is not None:
            name = tag[len(prefix):]
            if name:
                info.includes[INCLUDE_PREFIXES[prefix]].append(name)
        elif tag in _KIND_TAGS:
            seen_kinds.add(_KIND_TAGS[tag])
        elif not tag.startswith(_DROPPED_PREFIXES):
            info.filtered_tags.append(tag)

    if PackageKinds.MODULE.value in seen_kinds:
        info.kind = PackageKinds.MODULE.value
    elif PackageKinds.SCRIPT.value in seen_kinds:
        info.kind = PackageKinds.SCRIPT.value
    return info
