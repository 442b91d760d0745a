import logging

import httpx

from expense_ocr import config
from expense_ocr.receipt.errors import UpstreamError

logger = logging.getLogger("expense_ocr")

RETRYABLE_STATUS_CODES = {502, 503, 504}


async def post_json(
    service: str,
    url: str,
    payload: dict,
    *,
    params: dict | None = None,
    timeout: float | None = None,
    max_retries: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """POST a JSON body and return the successful response.

    Transport failures and 502/503/504 are retried up to ``max_retries`` times.
    Any other non-success status raises UpstreamError straight away.
    """
    timeout = config.UPSTREAM_TIMEOUT_SECONDS if timeout is None else timeout
    max_retries = config.UPSTREAM_MAX_RETRIES if max_retries is None else max_retries

    attempt = 0
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        while True:
            attempt += 1
            try:
                resp = await client.post(url, params=params, json=payload)
            except httpx.TransportError as e:
                if attempt <= max_retries:
                    logger.warning(
                        f"{service} call failed, retrying: {e!r}",
                        extra={"extra_data": {"service": service, "attempt": attempt}},
                    )
                    continue
                raise UpstreamError(service, None, repr(e)) from e

            if resp.is_success:
                break

            if resp.status_code in RETRYABLE_STATUS_CODES and attempt <= max_retries:
                logger.warning(
                    f"{service} returned {resp.status_code}, retrying",
                    extra={"extra_data": {"service": service, "attempt": attempt}},
                )
                continue

            logger.error(
                f"{service} returned {resp.status_code}",
                extra={"extra_data": {"service": service, "status": resp.status_code, "attempt": attempt}},
            )
            raise UpstreamError(service, resp.status_code, resp.text)

    return resp


def read_json_object(service: str, resp: httpx.Response) -> dict:
    """Decode a reply body that must be a JSON object, else UpstreamError."""
    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamError(service, resp.status_code, resp.text) from e
    if not isinstance(data, dict):
        raise UpstreamError(service, resp.status_code, resp.text)
    return data
