import logging
import random
import time

logger = logging.getLogger(__name__)


def with_backoff(fn, max_retries=4, base=0.05, cap=1.0, retry_on=(Exception,)):
    for i in range(max_retries):
        try:
            return fn()
        except retry_on as e:
            if i == max_retries - 1:
                raise
            sleep = min(cap, base * (2 ** i)) * (1 + 0.1 * random.random())
            logger.warning("retrying after %s (attempt %d/%d, sleep %.2fs)", e, i + 1, max_retries, sleep)
            time.sleep(sleep)
