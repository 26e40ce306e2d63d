# repopatch/patch/apply.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..errors import TransportError
from ..models.source import LocalSource, RemoteSource
from ..sources.registry import SourceRegistry
from ..transport import RemoteClient

log = logging.getLogger(__name__)


class ApplyFailure(str, Enum):
    NO_SELECTION = "no_selection"
    SOURCE_MISSING = "source_missing"
    LOCAL_UNSUPPORTED = "local_unsupported"
    NO_ROOT_PATH = "no_root_path"
    EMPTY_PATCH = "empty_patch"
    NETWORK = "network"
    SERVICE = "service"


@dataclass
class ApplyResult:
    """Outcome of one apply request. `applied_files` is filled even on failure."""

    success: bool
    applied_files: List[str] = field(default_factory=list)
    error: Optional[str] = None
    details: List[str] = field(default_factory=list)
    message: str = ""
    reason: Optional[ApplyFailure] = None

    def status_text(self) -> str:
        if self.success:
            return f"Patch applied successfully to {len(self.applied_files)} file(s)."
        if self.reason is not None and self.reason is not ApplyFailure.SERVICE:
            return self.message or f"Error: {self.error}"
        text = f"Error applying patch: {self.error}"
        if self.applied_files:
            text += f" ({len(self.applied_files)} file(s) might have been partially applied)."
        return text


def _rejected(reason: ApplyFailure, message: str) -> ApplyResult:
    log.warning("Apply rejected (%s): %s", reason.value, message)
    return ApplyResult(success=False, error=message, message=message, reason=reason)


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


async def apply_patch(client: RemoteClient, root_path: str, patch_text: str) -> ApplyResult:
    """
    Submit `patch_text` to the apply service for the directory `root_path`.

    Success is claimed only when the service answers 2xx *and* says so. Any
    files the service reports as applied are surfaced regardless, since a
    failed run may have modified the target partway.
    """
    if not root_path:
        return _rejected(ApplyFailure.NO_ROOT_PATH, "Error: Selected source has no valid path.")
    if not patch_text or not patch_text.strip():
        return _rejected(ApplyFailure.EMPTY_PATCH, "Error: Patch content is empty.")

    try:
        reply = await client.apply_patch(root_path, patch_text)
    except TransportError as e:
        log.error("Error sending apply patch request: %s", e)
        message = f"Network/Request error: {e}"
        return ApplyResult(success=False, error=str(e), message=message, reason=ApplyFailure.NETWORK)

    if reply.data is None:
        error = f"Server responded with status {reply.status} and a non-JSON body"
        result = ApplyResult(success=False, error=error, reason=ApplyFailure.SERVICE)
        result.message = result.status_text()
        return result

    data = reply.data
    applied = _string_list(data.get("appliedFiles"))
    details = _string_list(data.get("details"))
    if reply.ok and data.get("success") is True:
        result = ApplyResult(success=True, applied_files=applied, details=details)
        result.message = result.status_text()
        log.info("Patch application successful: %d file(s)", len(applied))
        return result

    error = data.get("error") or f"Server responded with status {reply.status}"
    result = ApplyResult(
        success=False,
        applied_files=applied,
        error=str(error),
        details=details,
        reason=ApplyFailure.SERVICE,
    )
    result.message = result.status_text()
    log.error("Patch application failed: %s", result.message)
    return result


async def apply_to_selected(registry: SourceRegistry, client: RemoteClient, patch_text: str) -> ApplyResult:
    """Run every local precondition against the selected source, then `apply_patch`."""
    if registry.selected_id is None:
        return _rejected(ApplyFailure.NO_SELECTION, "Error: No project source selected.")
    source = registry.selected()
    if source is None:
        return _rejected(ApplyFailure.SOURCE_MISSING, "Error: Selected project source not found.")
    if isinstance(source, LocalSource):
        return _rejected(
            ApplyFailure.LOCAL_UNSUPPORTED,
            "Error: Cannot apply patch to uploaded directories.",
        )
    if not isinstance(source, RemoteSource) or not source.root_path:
        return _rejected(ApplyFailure.NO_ROOT_PATH, "Error: Selected source has no valid path.")
    return await apply_patch(client, source.root_path, patch_text)
