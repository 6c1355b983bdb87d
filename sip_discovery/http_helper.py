import logging
import time
import requests

logger = logging.getLogger(__name__)

# Status codes worth another attempt; anything else non-200 is final
RETRYABLE_STATUS = {429, 500, 502, 503, 504}

def get_json_with_retries(url, params=None, retries=3, backoff=1.5, timeout=20):
    """
    GET `url` and return the decoded JSON body, or None once retries are exhausted
    or the server answers with a non-retryable status / non-JSON body.
    """
    attempt = 0
    while True:
        try:
            r = requests.get(url, params=params, timeout=timeout)
            if r.status_code == 200:
                try:
                    return r.json()
                except ValueError:
                    logger.warning("Non-JSON response from %s", url)
                    return None
            attempt += 1
            if r.status_code not in RETRYABLE_STATUS or attempt > retries:
                logger.warning("HTTP %s for %s with %s. Giving up.", r.status_code, url, params)
                return None
        except requests.RequestException as e:
            attempt += 1
            if attempt > retries:
                logger.warning("Request error for %s with %s: %s. Giving up.", url, params, e)
                return None
        time.sleep(backoff ** attempt)
