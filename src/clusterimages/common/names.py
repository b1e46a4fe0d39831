"""Cluster and server group naming conventions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PUSH_PATTERN = re.compile(r"^(?P<cluster>.+?)-v(?P<sequence>\d{3,4})$")


@dataclass(frozen=True)
class ClusterName:
    """Parsed form of an ``app-stack-detail`` cluster or server group name."""

    cluster: str
    app: str
    stack: Optional[str] = None
    detail: Optional[str] = None
    sequence: Optional[int] = None


def parse_cluster_name(name: str) -> ClusterName:
    """Split a cluster or server group name into its components.

    A trailing ``-vNNN`` push suffix is stripped before the remaining name is
    split into at most three hyphen-separated parts; the detail keeps any
    further hyphens.
    """

    cluster = name
    sequence: Optional[int] = None
    match = _PUSH_PATTERN.match(name)
    if match:
        cluster = match.group("cluster")
        sequence = int(match.group("sequence"))

    parts = cluster.split("-", 2)
    app = parts[0]
    stack = parts[1] if len(parts) > 1 and parts[1] else None
    detail = parts[2] if len(parts) > 2 and parts[2] else None
    return ClusterName(cluster=cluster, app=app, stack=stack, detail=detail, sequence=sequence)
