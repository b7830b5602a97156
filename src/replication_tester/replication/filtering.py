"""Stream filter eliding empty transactions from a replication message stream."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from .messages import ReplicationMessage

logger = logging.getLogger(__name__)


def filter_messages(
    messages: Iterable[ReplicationMessage],
    *,
    keep_empty_transactions: bool = False,
) -> Iterator[ReplicationMessage]:
    """Yield `messages` in order, dropping Begin/Commit pairs with nothing between.

    A Begin is cloned before advancing because the source may reuse the
    message object. A Begin at the very end of the stream is still yielded.
    """
    iterator = iter(messages)
    if keep_empty_transactions:
        yield from iterator
        return

    for message in iterator:
        if not message.is_begin:
            yield message
            continue

        begin = message.clone()
        try:
            following = next(iterator)
        except StopIteration:
            yield begin
            return

        if following.is_commit:
            logger.debug("skipping empty transaction at %s", begin.position)
            continue

        yield begin
        yield following


__all__ = ["filter_messages"]
