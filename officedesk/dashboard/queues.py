"""Parallel fetch of the memo review queues."""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

from officedesk.api.schemas import MemoResponse
from officedesk.dashboard.client import ApiError
from officedesk.dashboard.services import MemoService

logger = logging.getLogger(__name__)


@dataclass
class QueueSnapshot:
    """Both queues, or neither: a failed fetch leaves both lists empty."""
    desk_head: List[MemoResponse] = field(default_factory=list)
    leo: List[MemoResponse] = field(default_factory=list)
    failed: bool = False
    error: Optional[str] = None


class PendingQueueFetcher:
    def __init__(self, memos: MemoService):
        self.memos = memos

    def fetch(self) -> QueueSnapshot:
        """
        Issue both queue requests before waiting on either.

        If either request fails the whole snapshot is failed; a half-loaded
        dashboard would look like one queue is simply empty. Each worker gets
        its own HTTP session.
        """
        desk_head_memos = self.memos.fork()
        leo_memos = self.memos.fork()
        errors = []
        results = []
        try:
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="queue-fetch") as pool:
                desk_head_future = pool.submit(desk_head_memos.get_memos_pending_desk_head)
                leo_future = pool.submit(leo_memos.get_memos_pending_leo)
                for name, future in (("desk head", desk_head_future), ("LEO", leo_future)):
                    try:
                        results.append(future.result())
                    except ApiError as e:
                        logger.error("Failed to load the %s queue: %s", name, e.message)
                        errors.append(e.message)
                    except Exception as e:
                        logger.exception("Failed to load the %s queue", name)
                        errors.append(str(e) or type(e).__name__)
        finally:
            desk_head_memos.close()
            leo_memos.close()

        if errors:
            return QueueSnapshot(failed=True, error=errors[0])
        desk_head, leo = results
        return QueueSnapshot(desk_head=desk_head, leo=leo)
