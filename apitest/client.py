"""HTTP helpers to talk to the test deployment.

Every helper here is meant for test setup: when the deployment does not
answer as expected, continuing would only produce misleading failures, so
they raise HardAbort instead of returning an error.
"""
import logging
import os
import re
import time

import requests

from apitest.config import get_settings
from apitest.errors import HardAbort
from apitest.logtail import tail_log_start, tail_log_read

logger = logging.getLogger(__name__)

_ORIGIN_RE = re.compile(r"^(\w+://[^/]+)/")


def new_client(settings=None):
    """Return a fresh client; each Session starts with its own empty cookie jar."""
    settings = settings or get_settings()
    client = requests.Session()
    # a neutral user-agent, it may appear in some results
    client.headers["User-Agent"] = settings.user_agent
    return client


def construct_test_url(target, prefix="world", settings=None):
    """
    Build the URL of a page of the test deployment.

    Args:
        target (str): path, eg. "/product/35242200055" or "/cgi/login.pl"
        prefix (str): subdomain, a country code or "<country>-<language>",
            eg. "world-fr"

    Returns:
        str: eg. "http://world-fr.openfoodfacts.localhost/cgi/display.pl?/product/35242200055"
    """
    settings = settings or get_settings()
    link = settings.domain
    # no cgi inside url: route through display.pl
    if not target.startswith("/cgi/"):
        link += "/cgi/display.pl?"
    return f"{settings.scheme}://{prefix}.{link}{target}"


def origin_from_url(url):
    """Compute the "Origin" header for url."""
    match = _ORIGIN_RE.match(url)
    if match is None:
        return None
    return match.group(1)


def is_success(response):
    return 200 <= response.status_code < 300


def is_redirect(response):
    return 300 <= response.status_code < 400


def describe_response(response):
    return {
        "status": response.status_code,
        "reason": response.reason,
        "content": response.text[:2000],
    }


def send(client, method, url, settings=None, **kwargs):
    """Issue a request; a transport failure aborts the run."""
    settings = settings or get_settings()
    kwargs.setdefault("timeout", settings.timeout)
    try:
        return client.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise HardAbort(f"{method} request failed", url=url, details={"error": repr(e)}) from e


def _abort(message, url, response, **details):
    details.update(describe_response(response))
    logger.error("%s (%s): status %s", message, url, response.status_code)
    raise HardAbort(message, url=url, details=details)


def get_page(client, url, settings=None):
    """Get a page of the app, url being the path on the main test website."""
    settings = settings or get_settings()
    target = settings.website_url + url
    response = send(client, "GET", target, settings=settings)
    if not is_success(response):
        _abort(f"Couldn't get page {url}", target, response)
    return response


def post_form(client, url, fields, settings=None):
    """Post a form, url being the path on the main test website."""
    settings = settings or get_settings()
    target = settings.website_url + url
    response = send(client, "POST", target, settings=settings, data=fields)
    if not is_success(response):
        _abort(f"Couldn't submit form {url}", target, response, fields=fields)
    return response


def create_user(client, fields, settings=None):
    """Create a user through the user form.

    The server log written during the call is attached to the error when
    it fails.
    """
    settings = settings or get_settings()
    fields = dict(fields)
    target = settings.website_url + "/cgi/user.pl"
    with tail_log_start(settings.log_path) as tail:
        response = send(client, "POST", target, settings=settings, data=fields)
        if not is_success(response):
            _abort("Couldn't create user", target, response, fields=fields, log=tail_log_read(tail))
    return response


def edit_user(client, fields, settings=None):
    if fields.get("type") != "edit":
        raise HardAbort("Action type must be 'edit' in edit_user", details={"fields": fields})
    # same form as user creation
    return create_user(client, fields, settings=settings)


def login(client, user_id, password, settings=None):
    settings = settings or get_settings()
    fields = {
        "user_id": user_id,
        "password": password,
        ".submit": "submit",
    }
    target = settings.website_url + "/cgi/login.pl"
    response = send(client, "POST", target, settings=settings, data=fields, allow_redirects=False)
    if not (is_success(response) or is_redirect(response)):
        _abort("Couldn't login", target, response, user_id=user_id)
    return response


def edit_product(client, fields, settings=None):
    """Edit a product through the API, creating it if it does not exist."""
    settings = settings or get_settings()
    fields = dict(fields)
    target = settings.website_url + "/cgi/product_jqm2.pl"
    response = send(client, "POST", target, settings=settings, data=fields)
    if not is_success(response):
        _abort("Couldn't create product", target, response, fields=fields)
    return response


def html_displays_error(page):
    """
    Tell if a form page displays errors.

    Most forms answer 200 while displaying an error message in the error
    list.
    """
    return '<li class="error">' in page


def wait_server(max_attempts=60, interval=1, client=None, sleep=time.sleep, settings=None):
    """Wait until the front page answers with a success."""
    settings = settings or get_settings()
    client = client or new_client(settings)
    target_url = construct_test_url("", settings=settings)
    count = 0
    while True:
        try:
            response = client.get(target_url, timeout=settings.timeout)
            if is_success(response):
                return
            status = response.status_code
        except requests.RequestException as e:
            status = repr(e)
        sleep(interval)
        count += 1
        if count % 3 == 0:
            logger.info("Waiting for backend to be ready since more than %s seconds... (%s: %s)",
                        count * interval, target_url, status)
        if count > max_attempts:
            raise HardAbort("Waited too much for backend", url=target_url, details={"last_status": status})


def wait_dynamic_front(max_attempts=100, interval=1, sleep=time.sleep, settings=None):
    """Wait until the static assets are built, by looking for one of them."""
    settings = settings or get_settings()
    count = 0
    while not os.path.exists(settings.static_asset):
        sleep(interval)
        count += 1
        if count % 3 == 0:
            logger.info("Waiting for dynamicfront to be ready since %s seconds...", count * interval)
        if count > max_attempts:
            raise HardAbort("Waited too much for dynamicfront", details={"asset": settings.static_asset})


def wait_application_ready(settings=None, sleep=time.sleep):
    """Wait for server and static assets; run it before integration tests."""
    wait_server(settings=settings, sleep=sleep)
    wait_dynamic_front(settings=settings, sleep=sleep)
