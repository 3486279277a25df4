import json

import pytest

from apitest.base import (TestCase, GetRequest, PostRequest, PutRequest, DeleteRequest,
                          PatchRequest, OptionsRequest)
from apitest.evaluate import evaluate_request, execute_api_tests
from apitest.report import Reporter
from stubs import StubSession, make_response

JSON_TYPE = "application/json; charset=utf-8"


@pytest.fixture
def test_file(tmp_path):
    path = tmp_path / "api_v3_product.t"
    path.write_text("")
    return path


def expected_dir(test_file):
    return test_file.parent / "expected_test_results" / "api_v3_product"


def test_request_variants():
    assert TestCase("a").request() == GetRequest()
    assert TestCase("b", method="POST", body="{}", form={"x": "1"}).request() == \
        PostRequest(body="{}", form={"x": "1"})
    assert TestCase("c", method="PUT", body="{}").request() == PutRequest(body="{}")
    assert TestCase("d", method="DELETE").request() == DeleteRequest()
    assert TestCase("e", method="PATCH", body="[]").request() == PatchRequest(body="[]")
    assert TestCase("f", method="OPTIONS").request() == OptionsRequest()


def test_unknown_method_is_rejected():
    with pytest.raises(ValueError):
        TestCase("bad", method="TRACE")
    with pytest.raises(ValueError):
        TestCase("bad", expected_type="xml")


def test_unknown_request_variant():
    with pytest.raises(TypeError):
        evaluate_request(StubSession(), object(), "http://x/", {})


def test_get_records_then_compares(test_file):
    tests = [TestCase("get-product", path="/api/v3/product/123", query_string="?fields=code")]

    client = StubSession([make_response(200, '{"code": "123", "status": "success"}')])
    reporter = execute_api_tests(test_file, tests, client=client, update=True)
    assert reporter.passed

    method, url, kwargs = client.calls[0]
    assert method == "GET"
    assert url == "http://world.openfoodfacts.localhost/cgi/display.pl?/api/v3/product/123?fields=code"
    assert kwargs["headers"] == {"Origin": "http://world.openfoodfacts.localhost"}
    recorded = json.loads((expected_dir(test_file) / "get-product.json").read_text())
    assert recorded == {"code": "123", "status": "success"}

    client = StubSession([make_response(200, '{"code": "123", "status": "failure"}')])
    reporter = execute_api_tests(test_file, tests, client=client, update=False)
    assert [c.label for c in reporter.failures] == ["get-product - result"]


def test_post_body_is_sent_as_json(test_file):
    tests = [TestCase("post-body", method="POST", path="/api/v3/product/123", body='{"a": "é"}',
                      form={"ignored": "1"}, headers_in={"Origin": "http://other.localhost"})]
    client = StubSession([make_response(200, "{}")])
    execute_api_tests(test_file, tests, client=client, update=True)
    method, _, kwargs = client.calls[0]
    assert method == "POST"
    assert kwargs["data"] == '{"a": "é"}'.encode("utf-8")
    assert kwargs["headers"] == {"Content-Type": JSON_TYPE, "Origin": "http://other.localhost"}
    assert "files" not in kwargs


def test_post_form_url_encoded(test_file):
    tests = [TestCase("post-form", method="POST", path="/cgi/product_jqm2.pl", form={"code": "123"})]
    client = StubSession([make_response(200, "{}")])
    execute_api_tests(test_file, tests, client=client, update=True)
    _, url, kwargs = client.calls[0]
    assert url == "http://world.openfoodfacts.localhost/cgi/product_jqm2.pl"
    assert kwargs["data"] == {"code": "123"}
    assert "files" not in kwargs


def test_post_form_multipart(test_file, tmp_path):
    image = tmp_path / "front.jpg"
    image.write_bytes(b"jpeg data")
    tests = [TestCase("upload", method="POST", path="/cgi/product_image_upload.pl",
                      form={"code": "123", "imgupload_front": [str(image)]})]
    client = StubSession([make_response(200, "{}")])
    execute_api_tests(test_file, tests, client=client, update=True)
    _, _, kwargs = client.calls[0]
    assert kwargs["data"] == {"code": "123"}
    assert kwargs["files"] == {"imgupload_front": ("front.jpg", b"jpeg data")}


def test_post_without_content(test_file):
    client = StubSession([make_response(200, "{}")])
    execute_api_tests(test_file, [TestCase("empty", method="POST", path="/api/v3/x")],
                      client=client, update=True)
    _, _, kwargs = client.calls[0]
    assert "data" not in kwargs


@pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
def test_body_methods_send_json(test_file, method):
    client = StubSession([make_response(200, "{}")])
    execute_api_tests(test_file, [TestCase("body", method=method, path="/api/v3/x", body="[1]")],
                      client=client, update=True)
    sent_method, _, kwargs = client.calls[0]
    assert sent_method == method
    assert kwargs["data"] == b"[1]"
    assert kwargs["headers"]["Content-Type"] == JSON_TYPE


def test_options_has_no_body(test_file):
    client = StubSession([make_response(200, "", {"Access-Control-Allow-Origin": "*"})])
    tests = [TestCase("options", method="OPTIONS", path="/api/v3/product/123", expected_type="html",
                      headers={"Access-Control-Allow-Origin": "*"})]
    reporter = execute_api_tests(test_file, tests, client=client, update=False)
    assert reporter.passed
    method, _, kwargs = client.calls[0]
    assert method == "OPTIONS"
    assert "data" not in kwargs


def test_invalid_json_fails_case_and_goes_on(test_file):
    tests = [
        TestCase("not-json", method="POST", path="/api/v3/product/123", body='{"a":1}',
                 expected_status_code=201, response_content_must_match="never there"),
        TestCase("json", path="/api/v3/product/456"),
    ]
    client = StubSession([make_response(201, "<html>oops</html>"), make_response(200, '{"b": 2}')])
    reporter = execute_api_tests(test_file, tests, client=client, update=True)

    assert len(client.calls) == 2
    failures = reporter.failures
    assert len(failures) == 1
    assert failures[0].label == "not-json"
    assert "not valid JSON" in failures[0].diagnostics
    assert "<html>oops</html>" in failures[0].diagnostics
    assert [c.label for c in reporter.checks if c.case == "json"] == ["json - Test status", "json - result"]


def test_status_and_headers_checks_are_independent(test_file):
    tests = [TestCase("checks", path="/api/v3/x", expected_status_code=404,
                      headers={"Content-Type": "application/json", "X-Debug": None},
                      expected_type="html")]
    response = make_response(200, "{}", {"Content-Type": "application/json", "X-Debug": "1"})
    reporter = execute_api_tests(test_file, tests, client=StubSession([response]), update=False)
    labels = {c.label: c.passed for c in reporter.checks}
    assert labels == {
        "checks - Test status": False,
        "checks - header Content-Type": True,
        "checks - header X-Debug should not be defined": False,
    }


def test_content_patterns_are_case_insensitive(test_file):
    tests = [
        TestCase("match", path="/cgi/x.pl", expected_type="html", response_content_must_match="product saved"),
        TestCase("no-match", path="/cgi/x.pl", expected_type="html", response_content_must_not_match="error"),
    ]
    client = StubSession([make_response(200, "Product Saved!"), make_response(200, "An ERROR occurred")])
    reporter = execute_api_tests(test_file, tests, client=client, update=False)
    assert [c.case for c in reporter.failures] == ["no-match"]


def test_text_results(test_file):
    tests = [TestCase("robots", path="/robots.txt", expected_type="text")]
    execute_api_tests(test_file, tests, client=StubSession([make_response(200, "User-agent: *\n")]),
                      update=True)
    assert (expected_dir(test_file) / "robots.txt").read_text() == "User-agent: *\n"

    reporter = execute_api_tests(test_file, tests, client=StubSession([make_response(200, "Disallow: /\n")]),
                                 update=False)
    assert [c.label for c in reporter.failures] == ["robots - result"]


def test_products_are_normalized(test_file):
    body = json.dumps({
        "product": {"code": "123", "created_t": 1700000000, "images": {"front": {"uploaded_t": 1}}},
        "products": [{"code": "456", "last_modified_t": 1700000001}],
    })
    tests = [TestCase("normalized", path="/api/v3/product/123")]
    execute_api_tests(test_file, tests, client=StubSession([make_response(200, body)]), update=True)
    recorded = json.loads((expected_dir(test_file) / "normalized.json").read_text())
    assert recorded == {
        "product": {"code": "123", "images": {"front": {}}},
        "products": [{"code": "456"}],
    }


def test_case_client_and_mapping_cases(test_file):
    default = StubSession([make_response(200, "{}")])
    specific = StubSession([make_response(200, "{}")])
    tests = [
        {"test_case": "default", "path": "/api/v3/a"},
        {"test_case": "moderator", "path": "/api/v3/b", "client": specific},
    ]
    reporter = Reporter()
    result = execute_api_tests(test_file, tests, client=default, reporter=reporter, update=True)
    assert result is reporter
    assert len(default.calls) == 1
    assert len(specific.calls) == 1
    assert reporter.passed


def test_assert_all_passed(test_file):
    reporter = execute_api_tests(test_file, [TestCase("bad", path="/x", expected_type="html")],
                                 client=StubSession([make_response(500, "")]), update=False)
    with pytest.raises(AssertionError, match="bad - Test status"):
        reporter.assert_all_passed()


@pytest.mark.parametrize("upload", [[], [""], ("", "front.jpg")])
def test_post_form_upload_without_path(test_file, upload):
    tests = [TestCase("upload", method="POST", path="/cgi/product_image_upload.pl",
                      form={"code": "123", "imgupload_front": upload})]
    client = StubSession([make_response(200, "{}")])
    with pytest.raises(ValueError, match="imgupload_front"):
        execute_api_tests(test_file, tests, client=client, update=True)
    assert client.calls == []
