"""Status-gated access to the client's views.

A view declares the job statuses under which it may render. When the current
status is outside that allow-list the guard redirects to the view matching
the job's actual state:

    completed            -> results view
    queued | processing  -> processing view
    anything else        -> landing view

Having no current job counts as being outside every allow-list.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

from analysis_client.models.job import ACTIVE_STATUSES, JobStatus
from analysis_client.store import JobStore


@dataclass(frozen=True)
class View:
    name: str
    path: str
    # None means ungated: the view renders whatever the job state is
    allowed: Optional[FrozenSet[JobStatus]] = None


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    path: str
    view: View

    @property
    def redirected(self) -> bool:
        return not self.allowed


LANDING = View("landing", "/")
PROCESSING = View("processing", "/processing", ACTIVE_STATUSES)
RESULTS = View("results", "/results", frozenset({JobStatus.COMPLETED}))

DEFAULT_VIEWS = (LANDING, PROCESSING, RESULTS)


def is_allowed(allowed: Iterable[JobStatus], status: Optional[JobStatus]) -> bool:
    """Membership test for an allow-list; a missing job is never a member."""
    if status is None:
        return False
    return JobStatus(status) in {JobStatus(s) for s in allowed}


def fallback_view(status: Optional[JobStatus]) -> View:
    """Canonical view for the job's current state."""
    if status == JobStatus.COMPLETED:
        return RESULTS
    if status in ACTIVE_STATUSES:
        return PROCESSING
    return LANDING


class RouteGuard:
    """Reads the JobStore to permit or redirect navigation."""

    def __init__(self, store: JobStore, views: Iterable[View] = DEFAULT_VIEWS) -> None:
        self.store = store
        self._views: Dict[str, View] = {view.path: view for view in views}

    def check(self, allowed: Iterable[JobStatus]) -> bool:
        return is_allowed(allowed, self.store.status)

    def resolve(self, view: View) -> RouteDecision:
        """Decide whether *view* may render now, or where to go instead."""
        if view.allowed is None or self.check(view.allowed):
            return RouteDecision(allowed=True, path=view.path, view=view)
        target = fallback_view(self.store.status)
        if target.path == view.path:
            target = LANDING
        return RouteDecision(allowed=False, path=target.path, view=target)

    def resolve_path(self, path: str) -> RouteDecision:
        """Same as ``resolve`` for a path; unknown paths go to the landing view."""
        view = self._views.get(path)
        if view is None:
            return RouteDecision(allowed=False, path=LANDING.path, view=LANDING)
        return self.resolve(view)
