"""Graph traversal: deterministic, cycle-safe visitation order over a flow."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from flowwright.core.types import Action, Flow


def traverse(flow: Flow) -> list[Action]:
    """
    Return every action exactly once.

    Depth-first from ``entry_action_id``, following links in their fixed
    order (next; true before false; variant A before B). An id reached a
    second time is skipped. Actions the walk never reaches are appended in
    definition order, so the result is always a total ordering.
    """
    index = flow.action_map
    ordered: list[Action] = []
    visited: set[str] = set()

    stack: list[str] = [flow.entry_action_id] if flow.entry_action_id else []
    while stack:
        action_id = stack.pop()
        if action_id in visited:
            continue
        action = index.get(action_id)
        if action is None:
            continue
        visited.add(action_id)
        ordered.append(action)
        # reversed so the first link is popped (and fully explored) first
        stack.extend(reversed(action.next_ids()))

    for action in flow.actions:
        if action.id not in visited:
            visited.add(action.id)
            ordered.append(action)
    return ordered


def reachable_ids(flow: Flow) -> set[str]:
    """Ids reachable from the entry action."""
    index = flow.action_map
    seen: set[str] = set()
    stack = [flow.entry_action_id] if flow.entry_action_id in index else []
    while stack:
        action_id = stack.pop()
        if action_id in seen or action_id not in index:
            continue
        seen.add(action_id)
        stack.extend(index[action_id].next_ids())
    return seen


def correlate_by_order(
    local_actions: Iterable[Action],
    remote_resources: Iterable[dict[str, Any]],
    local_type: str,
    is_remote_match: Callable[[dict[str, Any]], bool],
) -> list[tuple[Action, dict[str, Any]]]:
    """
    Pair the Nth local action of ``local_type`` with the Nth matching remote
    resource.

    The remote service does not echo client-side ids for created actions, so
    this assumes it creates resources in input order. If the service ever
    reorders or batches creation, pairs will be silently misattributed.
    """
    locals_ = [a for a in local_actions if a.type == local_type]
    remotes = [r for r in remote_resources if is_remote_match(r)]
    return list(zip(locals_, remotes))
