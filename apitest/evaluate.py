import json
import logging
import os
import re
from contextlib import ExitStack

import requests

from apitest.base import (TestCase, GetRequest, PostRequest, PutRequest, DeleteRequest,
                          PatchRequest, OptionsRequest)
from apitest.client import construct_test_url, origin_from_url, send
from apitest.config import get_settings
from apitest.expected import (init_expected_results, compare_to_expected_results,
                              compare_file_to_expected_results,
                              normalize_product_for_test_comparison,
                              normalize_products_for_test_comparison)
from apitest.report import Reporter

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = {"Content-Type": "application/json; charset=utf-8"}


def is_multipart(form):
    return any(isinstance(value, (list, tuple)) for value in form.values())


def _multipart(form, stack):
    """Split a form into plain fields and files to upload.

    A list value is a file: [path] or [path, filename].
    """
    data = {}
    files = {}
    for name, value in form.items():
        if isinstance(value, (list, tuple)):
            if not value or not value[0]:
                raise ValueError(f"form field {name!r}: file upload without a path")
            path = value[0]
            filename = value[1] if len(value) > 1 else os.path.basename(path)
            files[name] = (filename, stack.enter_context(open(path, "rb")))
        else:
            data[name] = value
    return data, files


def _json_body(body):
    return (body or "").encode("utf-8")


def evaluate_request(client, request, url, headers, settings=None):
    if isinstance(request, GetRequest):
        return send(client, "GET", url, settings=settings, headers=headers)
    elif isinstance(request, PostRequest):
        if request.body is not None:
            return send(client, "POST", url, settings=settings, data=_json_body(request.body),
                        headers={**JSON_CONTENT_TYPE, **headers})
        elif request.form is not None:
            if is_multipart(request.form):
                with ExitStack() as stack:
                    data, files = _multipart(request.form, stack)
                    return send(client, "POST", url, settings=settings, data=data, files=files,
                                headers=headers)
            return send(client, "POST", url, settings=settings, data=request.form, headers=headers)
        return send(client, "POST", url, settings=settings, headers=headers)
    elif isinstance(request, (PutRequest, DeleteRequest, PatchRequest)):
        method = {PutRequest: "PUT", DeleteRequest: "DELETE", PatchRequest: "PATCH"}[type(request)]
        return send(client, method, url, settings=settings, data=_json_body(request.body),
                    headers={**JSON_CONTENT_TYPE, **headers})
    elif isinstance(request, OptionsRequest):
        return send(client, "OPTIONS", url, settings=settings, headers=headers)
    raise TypeError(f"unsupported request {request!r}")


def check_response(test, response, url, expected, reporter):
    """Run every check of a test case against its response."""
    case = test.test_case

    reporter.equal(response.status_code, test.expected_status_code, case, "Test status",
                   diag=f"Response status line: {response.status_code} {response.reason}")

    for hname, hvalue in test.headers.items():
        rvalue = response.headers.get(hname)
        # a None value asserts the header is not there
        if hvalue is None:
            reporter.ok(rvalue is None, case, f"header {hname} should not be defined",
                        diag=f"got: {rvalue!r}")
        else:
            reporter.equal(rvalue, hvalue, case, f"header {hname}")

    response_content = response.text

    if test.expected_type == "text":
        # eg. a dynamic robots.txt
        reporter.ok(compare_file_to_expected_results(response_content, expected.path_for(case, "txt"),
                                                     expected.update, case),
                    case, "result")
    elif test.expected_type != "html":
        try:
            decoded_json = json.loads(response_content)
        except ValueError as e:
            reporter.fail(case, diag=(f"The {test.method} request to {url} returned a response "
                                      f"that is not valid JSON: {e}\n"
                                      f"Response content: {response_content}"))
            return

        if isinstance(decoded_json, dict):
            if decoded_json.get("products") is not None:
                normalize_products_for_test_comparison(decoded_json["products"])
            if decoded_json.get("product") is not None:
                normalize_product_for_test_comparison(decoded_json["product"])

        reporter.ok(compare_to_expected_results(decoded_json, expected.path_for(case, "json"),
                                                expected.update, case),
                    case, "result")

    must_match = test.response_content_must_match
    if must_match is not None and not re.search(must_match, response_content, re.I):
        reporter.fail(case, diag=f"Must match: {must_match}\nResponse content: {response_content}")

    must_not_match = test.response_content_must_not_match
    if must_not_match is not None and re.search(must_not_match, response_content, re.I):
        reporter.fail(case, diag=f"Must not match: {must_not_match}\nResponse content: {response_content}")


def evaluate(test, client, expected, reporter, settings=None):
    logger.info("test_case: %s (%s %s%s)", test.test_case, test.method, test.path, test.query_string)

    url = construct_test_url(test.path + (test.query_string or ""), test.subdomain or "world",
                             settings=settings)
    headers = {}
    origin = origin_from_url(url)
    if origin is not None:
        headers["Origin"] = origin
    headers.update(test.headers_in)

    response = evaluate_request(test.client or client, test.request(), url, headers, settings=settings)
    check_response(test, response, url, expected, reporter)
    return response


def execute_api_tests(file, tests, client=None, reporter=None, settings=None, update=None):
    """
    Execute a list of test cases and check their responses.

    Args:
        file (str): path of the test file; expected results are stored
            beside it (see apitest.expected)
        tests (list): TestCase objects, or mappings of TestCase fields
        client: requests.Session used when a test case has no client of its own
        reporter (Reporter): where checks are recorded, a new one if None
        update (bool): record responses as expected results instead of
            comparing, defaults to the configured update mode

    Returns:
        Reporter: the reporter holding every check
    """
    settings = settings or get_settings()
    if update is None:
        update = settings.update_expected_results
    expected = init_expected_results(file, update=update)
    client = client or requests.Session()
    reporter = reporter or Reporter()

    for test in tests:
        if not isinstance(test, TestCase):
            test = TestCase(**test)
        evaluate(test, client, expected, reporter, settings=settings)

    return reporter
