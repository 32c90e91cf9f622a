import logging
from concurrent.futures import Executor, Future
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class PublishNotifier:
    """Pings the deploy webhook when a post goes live.

    The POST runs on a background executor and nobody waits for it: there
    is no retry, no ordering between calls and no delivery guarantee. The
    outcome only ever reaches the log.
    """

    def __init__(self, webhook_url: Optional[str], executor: Executor, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._executor = executor

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def notify(self) -> Optional[Future]:
        if not self.enabled:
            return None
        return self._executor.submit(self._post)

    def _post(self) -> None:
        try:
            response = requests.post(self.webhook_url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Failed to trigger deploy webhook: {e}")
            return
        if response.ok:
            logger.info("Deploy webhook triggered")
        else:
            logger.warning(f"Deploy webhook answered {response.status_code}")
