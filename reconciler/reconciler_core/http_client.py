"""
HTTP session with connection pooling, automatic retry, and TLS 1.2+.

Every caller goes through fetch()/download(); both raise
requests.RequestException on transport errors or non-2xx responses, so the
calling component decides how a failure is logged and classified.
"""

import os
import ssl

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import REQUEST_TIMEOUT_SEC, DOWNLOAD_TIMEOUT_SEC, RECONCILER_VERSION

_retry_strategy = Retry(
    total=3,
    backoff_factor=2,                           # Wait 2s, 4s, 8s between retries
    status_forcelist=[502, 503, 504],
    allowed_methods=["HEAD", "GET"],
)


class TLS12Adapter(HTTPAdapter):
    """HTTPAdapter whose SSL context refuses anything older than TLS 1.2."""

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        kwargs["ssl_context"] = context
        return super().init_poolmanager(*args, **kwargs)


def _get_ca_bundle():
    """Get the CA bundle path.

    Priority: env var → certifi.
    """
    env_ca = os.environ.get('REQUESTS_CA_BUNDLE') or os.environ.get('SSL_CERT_FILE')
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def create_session():
    """Create a new requests.Session with pooling, retry, and TLS 1.2+."""
    session = requests.Session()
    adapter = TLS12Adapter(
        pool_connections=1,
        pool_maxsize=3,
        max_retries=_retry_strategy,
    )
    session.mount("https://", adapter)
    session.mount("http://", HTTPAdapter(max_retries=_retry_strategy))
    session.verify = _get_ca_bundle()
    session.headers.update({"User-Agent": f"agent-reconciler/{RECONCILER_VERSION}"})
    return session


# Global shared session
http = create_session()


def fetch(url, timeout=REQUEST_TIMEOUT_SEC):
    """GET url and return the body bytes."""
    resp = http.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.content


def download(url, dest, timeout=DOWNLOAD_TIMEOUT_SEC):
    """Stream url to dest. A partially written file is removed on error."""
    try:
        with http.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in resp.iter_content(chunk_size=65536):
                    if chunk:
                        f.write(chunk)
    except (requests.RequestException, OSError):
        try:
            os.remove(dest)
        except OSError:
            pass
        raise
