# repopatch/core.py
import logging

from .errors import PatchParseError, ServiceError, TransportError
from .models.source import LocalSource, RemoteSource
from .patch.analyze import required_paths, resolve_for_preview
from .patch.diff import parse_patch
from .patch.render import PreviewResult, empty, invalid, render
from .resolve import ContentResolver
from .sources.registry import SourceRegistry
from .transport import RemoteClient

logger = logging.getLogger(__name__)

NO_PATH_ERROR = "No path specified for this server directory"


async def generate_preview(
    registry: SourceRegistry,
    resolver: ContentResolver,
    patch_text: str,
) -> PreviewResult:
    """
    Parse a patch, resolve the files it touches from the selected source, and
    render a line-classified preview.

    Checks run in order and each short-circuits before any I/O:
      - blank text: EMPTY
      - no selection, selected source missing, source in error: INVALID
      - unparsable text, or text with no diff records: INVALID
      - no required paths (only creations): EMPTY
    The failure set is cleared at the start and persisted after a full cycle.
    """
    registry.failures.clear()

    if not patch_text or not patch_text.strip():
        return empty("Paste patch content to see preview.")
    if registry.selected_id is None:
        return invalid("Select a project source first.")
    source = registry.selected()
    if source is None:
        return invalid("Selected project source not found.")
    if source.last_error:
        return invalid(f"Cannot preview: Source has error - {source.last_error}")

    try:
        records = parse_patch(patch_text)
    except PatchParseError as e:
        logger.warning("Patch parsing failed: %s", e)
        return invalid(f"Invalid patch format: {e}")
    if not records:
        return invalid("Invalid patch format: no file diffs found.")

    paths = required_paths(records)
    if not paths:
        return empty("Patch seems empty or only affects /dev/null.")

    logger.info("Fetching %d file(s) for preview...", len(paths))
    resolved = await resolver.resolve_files(source.id, sorted(paths))
    units = resolve_for_preview(records, resolved)
    result = render(units, registry.failures)
    await registry.save()
    return result


async def refresh_source(registry: SourceRegistry, client: RemoteClient, source_id: int) -> bool:
    """
    Re-fetch a remote source's directory tree, replacing the cached one.

    Local sources have nothing to fetch and only get their error cleared.
    Failures are recorded on the source (`last_error`, empty tree) rather
    than raised.
    """
    source = registry.get(source_id)
    if source is None:
        logger.error("Directory with ID %s not found.", source_id)
        return False

    if isinstance(source, LocalSource):
        logger.debug("Skipping fetch for local source: %s", source.display_name)
        await registry.clear_error(source_id)
        return True

    if not isinstance(source, RemoteSource) or not source.root_path:
        logger.error(NO_PATH_ERROR)
        await registry.record_error(source_id, NO_PATH_ERROR)
        return False

    try:
        listing = await client.fetch_directory(source.root_path)
    except ServiceError as e:
        logger.error("Failed to load directory structure for %s: %s", source_id, e)
        await registry.record_error(source_id, str(e))
        return False
    except TransportError as e:
        logger.error("Network error for directory %s: %s", source_id, e)
        await registry.record_error(source_id, f"Network error fetching directory structure: {e}")
        return False

    await registry.record_tree(source_id, listing.tree, root_path=listing.root)
    logger.info("Directory structure updated for %s: %d top-level item(s)", source_id, len(listing.tree))
    return True
