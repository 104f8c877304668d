from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .calls import CallKind, DrawingCall

logger = logging.getLogger(__name__)


@dataclass
class PlotGroup:
    index: int
    start: DrawingCall
    augments: List[DrawingCall] = field(default_factory=list)

    @property
    def calls(self) -> List[DrawingCall]:
        return [self.start, *self.augments]


@dataclass
class GroupedCalls:
    groups: List[PlotGroup] = field(default_factory=list)
    layout_calls: List[DrawingCall] = field(default_factory=list)


def group_calls(calls: Iterable[DrawingCall]) -> GroupedCalls:
    """Partition a call log into plot groups, each opened by a start call."""

    result = GroupedCalls()
    current: Optional[PlotGroup] = None
    for call in calls:
        if call.kind is CallKind.LAYOUT:
            result.layout_calls.append(call)
        elif call.kind is CallKind.START:
            current = PlotGroup(index=len(result.groups) + 1, start=call)
            result.groups.append(current)
        elif call.kind is CallKind.AUGMENT:
            if current is None:
                logger.warning("dropping %s: no plot has been started yet", call.expression or call.function)
                continue
            current.augments.append(call)
        else:
            logger.debug("ignoring unrecognised drawing call %s", call.function)
    return result
