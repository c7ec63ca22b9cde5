from __future__ import annotations

from typing import List, Optional

from .types import NestedGrouping, RawEvent


def flatten_grouping(grouping: Optional[NestedGrouping]) -> List[RawEvent]:
    """
    Concatenate every leaf sequence of ``{group: {sub_group: [event, ...]}}``.

    Both levels of keys are discarded.  Order within one leaf is preserved;
    order across groups follows mapping iteration and carries no meaning
    (sort on message_timestamp afterwards if chronology matters).
    """
    events: List[RawEvent] = []
    if not grouping:
        return events
    for sub_groups in grouping.values():
        if not sub_groups:
            continue
        for leaf in sub_groups.values():
            if leaf:
                events.extend(leaf)
    return events
