"""
Node Health Status Models

The aggregated status persisted on the CheckNodeHealth custom resource.
"""

from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from ..checker.models import Result, Status


@dataclass
class CheckResultSnapshot:
    """
    Persisted outcome of one checker.

    Attributes:
        name: Checker name (unique within a status)
        status: Tri-state verdict
        message: Result message (empty when healthy)
        error_code: Result error code (empty when healthy)
    """
    name: str
    status: Status
    message: str = ""
    error_code: str = ""

    @classmethod
    def from_result(cls, name: str, result: Result) -> "CheckResultSnapshot":
        return cls(
            name=name,
            status=result.status,
            message=result.detail.message if result.detail else "",
            error_code=result.detail.code if result.detail else "",
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckResultSnapshot":
        try:
            status = Status(data.get("status", Status.UNKNOWN.value))
        except ValueError:
            status = Status.UNKNOWN
        return cls(
            name=data.get("name", ""),
            status=status,
            message=data.get("message", ""),
            error_code=data.get("errorCode", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "status": self.status.value}
        if self.message:
            data["message"] = self.message
        if self.error_code:
            data["errorCode"] = self.error_code
        return data


@dataclass
class AggregatedStatus:
    """
    Per-node record merging the latest result of every checker.

    Results are keyed by checker name; recording a result for a name that
    is already present replaces the old entry.

    Attributes:
        node_ref: Name of the node the results belong to
        results: Checker name -> latest snapshot (insertion ordered)
        started_at: When the checks started (ISO 8601)
        finished_at: When the last pass finished (ISO 8601)
        extra: Other status fields carried through unchanged (e.g. conditions)
        resource: The custom resource the status was read from
    """
    node_ref: str
    results: Dict[str, CheckResultSnapshot] = field(default_factory=dict)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)
    resource: Optional[Dict[str, Any]] = None

    def update_result(self, snapshot: CheckResultSnapshot) -> None:
        """Record a snapshot, replacing any existing entry with the same name."""
        self.results[snapshot.name] = snapshot

    def record(self, name: str, result: Result) -> None:
        self.update_result(CheckResultSnapshot.from_result(name, result))

    def mark_started(self) -> None:
        if not self.started_at:
            self.started_at = _now()

    def mark_finished(self) -> None:
        self.finished_at = _now()

    def result_list(self) -> List[CheckResultSnapshot]:
        return list(self.results.values())

    def to_status_dict(self) -> Dict[str, Any]:
        """Serialize to the custom resource ``status`` field."""
        status = dict(self.extra)
        if self.started_at:
            status["startedAt"] = self.started_at
        if self.finished_at:
            status["finishedAt"] = self.finished_at
        status["results"] = [r.to_dict() for r in self.results.values()]
        return status

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "AggregatedStatus":
        """
        Build from a CheckNodeHealth custom resource dict.

        Duplicate result names in the stored list collapse to the last one.
        """
        spec = resource.get("spec") or {}
        status = dict(resource.get("status") or {})
        results: Dict[str, CheckResultSnapshot] = {}
        for item in status.pop("results", None) or []:
            snapshot = CheckResultSnapshot.from_dict(item)
            results[snapshot.name] = snapshot
        return cls(
            node_ref=(spec.get("nodeRef") or {}).get("name", ""),
            results=results,
            started_at=status.pop("startedAt", None),
            finished_at=status.pop("finishedAt", None),
            extra=status,
            resource=resource,
        )


def _now() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
