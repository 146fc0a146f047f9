# cms_publisher/application/publishing/hierarchy.py
"""
Folders -> pages -> page layers.

All three kinds use separate draft/published rows linked by `link_key`, so
every level has to finish (including the id remap) before the next level
builds its payloads.
"""
import time
from itertools import groupby
from typing import Iterable, List, Optional, Set

from flask import current_app

from cms_publisher.domain.publishing.identity import IdMap, TwinRowStrategy
from cms_publisher.domain.publishing.results import HierarchyResult
from .batch_upsert import plan_upserts, execute_plan

FOLDER_COLUMNS = ("page_folder_id", "name", "slug", "depth", "order", "settings", "content_hash")
PAGE_COLUMNS = (
    "page_folder_id",
    "name",
    "slug",
    "order",
    "depth",
    "is_index",
    "is_dynamic",
    "error_page",
    "settings",
    "content_hash",
)
LAYERS_COLUMNS = ("page_id", "layers", "generated_css", "content_hash")


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


def _with_ancestors(folder_ids: Iterable[str], folders_by_id) -> Set[str]:
    """Selected folders plus every active ancestor, so parents publish first."""
    selected: Set[str] = set()
    for folder_id in folder_ids:
        current = folders_by_id.get(folder_id)
        while current is not None and current.id not in selected:
            selected.add(current.id)
            current = folders_by_id.get(current.page_folder_id)
    return selected


def _seed_id_map(strategy, drafts, published) -> IdMap:
    id_map = IdMap(strict=True)
    for draft_id, twin in strategy.resolve_twins(drafts, published).items():
        if twin is not None:
            id_map.record(draft_id, twin.id)
    return id_map


def publish_folders(stores, draft_folders: List, selected: Optional[Set[str]], result: HierarchyResult) -> IdMap:
    started = time.perf_counter()
    strategy = TwinRowStrategy(stores.folders)

    published = stores.folders.select_by_keys(
        [f.link_key for f in draft_folders], True, key="link_key"
    )
    twins = strategy.resolve_twins(draft_folders, published)
    # Unselected folders that are already live still need to resolve for children
    folder_map = _seed_id_map(strategy, draft_folders, published)

    to_publish = [f for f in draft_folders if selected is None or f.id in selected]
    ordered = sorted(to_publish, key=lambda f: (f.depth or 0, f.order or 0))

    for _, level in groupby(ordered, key=lambda f: f.depth or 0):
        plan = plan_upserts(
            "page_folders",
            strategy,
            list(level),
            twins,
            FOLDER_COLUMNS,
            remaps={"page_folder_id": folder_map},
        )
        result.counts["folders"].add(execute_plan(strategy, plan, folder_map))

    result.durations_ms["folders"] = _elapsed_ms(started)
    return folder_map


def publish_pages(stores, draft_pages: List, folder_map: IdMap, result: HierarchyResult) -> IdMap:
    started = time.perf_counter()
    strategy = TwinRowStrategy(stores.pages)

    published = stores.pages.select_by_keys([p.link_key for p in draft_pages], True, key="link_key")
    twins = strategy.resolve_twins(draft_pages, published)
    page_map = _seed_id_map(strategy, draft_pages, published)

    plan = plan_upserts(
        "pages",
        strategy,
        draft_pages,
        twins,
        PAGE_COLUMNS,
        remaps={"page_folder_id": folder_map},
    )
    result.counts["pages"].add(execute_plan(strategy, plan, page_map))

    result.durations_ms["pages"] = _elapsed_ms(started)
    return page_map


def publish_layers(stores, draft_pages: List, page_map: IdMap, result: HierarchyResult) -> None:
    started = time.perf_counter()
    strategy = TwinRowStrategy(stores.layers)

    draft_layers = stores.layers.select_by_keys([p.id for p in draft_pages], False, key="page_id")
    publishable = []
    for layers in draft_layers:
        if layers.page_id not in page_map:
            current_app.logger.warning(
                "[publish] skipping layers %s: page %s has no published twin",
                layers.id, layers.page_id,
            )
            continue
        publishable.append(layers)

    published = stores.layers.select_by_keys(
        [row.link_key for row in publishable], True, key="link_key"
    )
    twins = strategy.resolve_twins(publishable, published)

    plan = plan_upserts(
        "page_layers",
        strategy,
        publishable,
        twins,
        LAYERS_COLUMNS,
        remaps={"page_id": page_map},
    )
    result.counts["layers"].add(execute_plan(strategy, plan))

    result.durations_ms["layers"] = _elapsed_ms(started)


def publish_hierarchy(
    stores,
    result: HierarchyResult,
    folder_ids: Optional[Iterable[str]] = None,
    page_ids: Optional[Iterable[str]] = None,
) -> HierarchyResult:
    """
    Publishes draft folders, pages and their layer trees.

    With no selection everything is considered (unchanged rows are skipped by
    hash). With a selection, only the given folders/pages are published, plus
    the ancestor folders they hang off.
    """
    folder_ids = list(folder_ids or [])
    page_ids = list(page_ids or [])
    selective = bool(folder_ids or page_ids)

    draft_folders = stores.folders.select_active(False)
    draft_pages = stores.pages.select_active(False)

    if selective:
        folders_by_id = {f.id: f for f in draft_folders}
        wanted_pages = set(page_ids)
        draft_pages = [p for p in draft_pages if p.id in wanted_pages]
        selected_folders = _with_ancestors(
            folder_ids + [p.page_folder_id for p in draft_pages if p.page_folder_id],
            folders_by_id,
        )
    else:
        selected_folders = None

    folder_map = publish_folders(stores, draft_folders, selected_folders, result)
    page_map = publish_pages(stores, draft_pages, folder_map, result)
    publish_layers(stores, draft_pages, page_map, result)

    result.folder_ids = folder_map.as_dict()
    result.page_ids = page_map.as_dict()
    return result
