"""
HTTP reachability probe.

A probe is one GET request: redirects followed, Basic credentials kept across
redirects, certificate errors ignored. There is no retry. Whether a negative
result is good news is up to the caller.
"""

import logging
from typing import Optional

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning

from .console import Output
from .types import Credentials, ProbeResult

logger = logging.getLogger(__name__)

# Self-signed certificates are expected in the demo cluster
urllib3.disable_warnings(InsecureRequestWarning)


class TrustedRedirectSession(requests.Session):
    """Session that resends credentials on redirects to other hosts."""

    def rebuild_auth(self, prepared_request, response):
        return


def probe_endpoint(
    url: str,
    expected_status: int = 200,
    description: str = "",
    credentials: Optional[Credentials] = None,
    timeout: float = 30.0,
    session: Optional[requests.Session] = None,
    output: Optional[Output] = None,
) -> ProbeResult:
    """
    Probe an endpoint once and compare the status code.

    Args:
        url: URL to GET
        expected_status: Status code that counts as success
        description: Human readable label for the output
        credentials: Basic auth credentials (default user:password)
        timeout: Request timeout in seconds
        session: Session to use (default: a new TrustedRedirectSession)
        output: Where to report progress (default: a new Output)

    Returns:
        ProbeResult; success is True only when a response arrived with the
        expected status code
    """
    credentials = credentials or Credentials()
    output = output or Output(interactive=False)
    result = ProbeResult(url=url, expected_status=expected_status)

    output.info(f"Testing: {description or url}")
    output.command(f"GET {url} (basic auth: {credentials.username}, follow redirects, insecure TLS)")

    owns_session = session is None
    session = session or TrustedRedirectSession()
    try:
        response = session.get(
            url,
            auth=credentials.as_tuple(),
            allow_redirects=True,
            verify=False,
            timeout=timeout,
        )
        result.status_code = response.status_code
        result.body = response.text or ""
    except requests.RequestException as e:
        result.error = str(e) or e.__class__.__name__
        logger.debug("Probe of %s failed: %s", url, result.error)
    finally:
        if owns_session:
            session.close()

    if not result.connected:
        output.error("Request failed or timed out")
        output.block("Connection could not be established", style="red")
        return result

    output.response(result.status_code, result.body)
    if result.success:
        output.success(f"Success! Response code: {result.status_code}")
    else:
        output.warning(
            f"Unexpected response code: {result.status_code} (expected: {expected_status})"
        )
    return result
