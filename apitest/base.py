from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS")
EXPECTED_TYPES = ("json", "text", "html")


@dataclass(frozen=True)
class GetRequest:
    pass


@dataclass(frozen=True)
class PostRequest:
    body: Optional[str] = None
    form: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class PutRequest:
    body: Optional[str] = None


@dataclass(frozen=True)
class DeleteRequest:
    body: Optional[str] = None


@dataclass(frozen=True)
class PatchRequest:
    body: Optional[str] = None


@dataclass(frozen=True)
class OptionsRequest:
    pass


@dataclass(frozen=True)
class TestCase:
    """One request and the response it is expected to get.

    A header mapped to None in ``headers`` asserts the header is absent.
    """
    test_case: str
    method: str = "GET"
    subdomain: str = "world"
    path: str = ""
    query_string: str = ""
    form: Optional[Dict[str, Any]] = None
    body: Optional[str] = None
    headers_in: Dict[str, str] = field(default_factory=dict)
    client: Any = None

    expected_status_code: int = 200
    headers: Dict[str, Optional[str]] = field(default_factory=dict)
    response_content_must_match: Optional[str] = None
    response_content_must_not_match: Optional[str] = None
    expected_type: str = "json"

    # keeps pytest from collecting this class when imported in a test module
    __test__ = False

    def __post_init__(self):
        if self.method not in METHODS:
            raise ValueError(f"{self.test_case}: unsupported method {self.method!r}")
        if self.expected_type not in EXPECTED_TYPES:
            raise ValueError(f"{self.test_case}: unsupported expected_type {self.expected_type!r}")

    def __str__(self):
        return f"test_case: {self.test_case}, method: {self.method}, subdomain: {self.subdomain}, path: {self.path}{self.query_string}"

    def request(self):
        if self.method == "GET":
            return GetRequest()
        elif self.method == "POST":
            return PostRequest(body=self.body, form=self.form)
        elif self.method == "PUT":
            return PutRequest(body=self.body)
        elif self.method == "DELETE":
            return DeleteRequest(body=self.body)
        elif self.method == "PATCH":
            return PatchRequest(body=self.body)
        return OptionsRequest()


@dataclass
class TestSuite:
    path: Optional[str] = None
    tests: List[TestCase] = field(default_factory=list)

    __test__ = False

    def __str__(self):
        return f"path: {self.path}, tests: {[t.test_case for t in self.tests]}"

    def add_test(self, test):
        self.tests.append(test)
