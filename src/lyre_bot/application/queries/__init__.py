"""
Application Queries (CQRS Read Side)

Query objects and their handlers for read operations.
"""

from lyre_bot.application.queries.get_queue import GetQueueHandler, GetQueueQuery, QueueInfo

__all__ = [
    "GetQueueQuery",
    "GetQueueHandler",
    "QueueInfo",
]
