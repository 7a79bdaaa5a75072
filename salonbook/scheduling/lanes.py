"""Column layout for overlapping events in the admin day grid."""
from __future__ import annotations

from typing import Mapping, Sequence


def assign_lanes(events: Sequence[Mapping[str, object]]) -> list[dict[str, object]]:
    """Return copies of ``events`` with ``lane`` and ``cols`` keys added.

    Events are grouped into clusters of transitively overlapping items.
    Inside a cluster each event takes the first lane that is free at its
    start, and every event of the cluster shares the cluster's lane count.
    """
    items = sorted((dict(e) for e in events), key=lambda e: e.get("startMin") or 0)
    laid: list[dict[str, object]] = []
    cluster: list[dict[str, object]] = []
    cluster_end = -1

    def flush() -> None:
        lanes_end: list[int] = []
        for ev in cluster:
            idx = 0
            while idx < len(lanes_end) and ev["startMin"] < lanes_end[idx]:
                idx += 1
            if idx == len(lanes_end):
                lanes_end.append(ev["endMin"])
            else:
                lanes_end[idx] = ev["endMin"]
            ev["lane"] = idx
        cols = len(lanes_end) or 1
        for ev in cluster:
            ev["cols"] = cols
            laid.append(ev)

    for ev in items:
        ev["startMin"] = ev.get("startMin") or 0
        ev["endMin"] = ev.get("endMin") or ev["startMin"]
        if not cluster or ev["startMin"] < cluster_end:
            cluster.append(ev)
            cluster_end = max(cluster_end, ev["endMin"])
        else:
            flush()
            cluster = [ev]
            cluster_end = ev["endMin"]
    if cluster:
        flush()
    return laid
