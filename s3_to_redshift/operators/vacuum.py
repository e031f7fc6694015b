"""Hand VACUUM/ANALYZE of a reloaded table over to the vacuum worker.

Only one vacuum can run on a cluster at a time, so instead of running it
here the request is queued through the gearman admin service.
"""
import json

import backoff
import requests

from s3_to_redshift.utils import logger

REQUEST_TIMEOUT = 60


def vacuum_payload(schema: str, table: str) -> str:
    return json.dumps({'analyze': f'{schema}."{table}"'})


@backoff.on_exception(
    backoff.expo,
    (requests.exceptions.ConnectionError, requests.exceptions.Timeout),
    max_tries=5,
)
def post_vacuum_job(
    gearman_admin_url: str,
    vacuum_worker: str,
    schema: str,
    table: str,
    timeout: int = REQUEST_TIMEOUT,
):
    endpoint = f"{gearman_admin_url.rstrip('/')}/{vacuum_worker}"
    logger.info("Submitting vacuum job for %s.%s to %s", schema, table, vacuum_worker)

    response = requests.post(
        endpoint,
        data=vacuum_payload(schema, table),
        headers={'Content-Type': 'text/plain'},
        timeout=timeout,
    )
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError:
        logger.error("Vacuum job submission failed: %s", response.text)
        raise
    return response
