"""
Parse ``.t`` test files.

A file holds one or more test cases::

    === TEST 1: get-existing-product
    Fetch a product created by the setup
    --- path
    /api/v3/product/123
    --- headers
    Access-Control-Allow-Origin: *
    X-Debug:
    --- expected_status_code: 200

``=== TEST`` starts a case, named by what follows the colon. ``--- name``
opens a section whose content is the following lines; ``--- name: value``
gives a one line section.
"""
from apitest.base import TestCase, TestSuite
from apitest.errors import ParseError

TEXT_SECTIONS = (
    "method",
    "subdomain",
    "path",
    "query_string",
    "body",
    "expected_type",
    "response_content_must_match",
    "response_content_must_not_match",
)
SECTIONS = TEXT_SECTIONS + ("description", "form", "headers_in", "headers", "expected_status_code")


def parse_title(line):
    title = line.replace("=== TEST", "", 1).strip()
    if ":" in title:
        title = title.split(":", 1)[1].strip()
    return title


def parse_headers(content, absent_as_none=False):
    """
    Parse "Name: value" lines.

    In expected headers an empty value means the header must be absent,
    it is returned as None.
    """
    headers = {}
    for line in content.split("\n"):
        line = line.strip()
        if not line:
            continue
        if ":" not in line:
            raise ValueError(f"header line without ':': {line!r}")
        name, value = line.split(":", 1)
        value = value.strip()
        if not value and absent_as_none:
            value = None
        headers[name.strip()] = value
    return headers


def parse_form(content):
    """
    Parse "name = value" lines.

    A value "@path" (or "@path;filename") is a file to upload, which makes
    the form a multipart one.
    """
    form = {}
    for line in content.split("\n"):
        line = line.strip()
        if not line:
            continue
        parts = line.split("=", 1)
        if len(parts) != 2:
            raise ValueError(f"form line without '=': {line!r}")
        name = parts[0].strip()
        value = parts[1].strip().strip('"').strip("'")
        if value.startswith("@"):
            upload = value[1:].split(";", 1)
            if not upload[0]:
                raise ValueError(f"form field {name!r}: '@' without a file path")
            form[name] = upload
        else:
            form[name] = value
    return form


def parse_expected_status_code(content):
    try:
        return int(content.strip())
    except ValueError:
        raise ValueError(f"expected_status_code is not a number: {content!r}")


def _section_value(section, content):
    if section in TEXT_SECTIONS:
        return content
    elif section == "form":
        return parse_form(content)
    elif section == "headers_in":
        return parse_headers(content)
    elif section == "headers":
        return parse_headers(content, absent_as_none=True)
    elif section == "expected_status_code":
        return parse_expected_status_code(content)
    return content


class _CaseBuilder(object):

    def __init__(self, title, line_no):
        self.title = title
        self.line_no = line_no
        self.fields = {}

    def set(self, section, content):
        if section == "description":
            return
        self.fields[section] = _section_value(section, content)

    def build(self):
        return TestCase(test_case=self.title, **self.fields)


def parse_test(test_content, path=None):
    """
    Parse the content of a test file.

    Args:
        test_content (str): raw content
        path (str): file it was read from, for error messages

    Returns:
        TestSuite: the test cases, in file order
    """
    suite = TestSuite(path=path)
    builder = None
    current_section = None
    section_start = None
    section_content = []

    def close_section():
        if builder is None or current_section is None:
            return
        try:
            builder.set(current_section, "\n".join(section_content).strip())
        except ValueError as e:
            raise ParseError(str(e), path, section_start)

    def close_case():
        if builder is None:
            return
        if not builder.title:
            raise ParseError("test case without a name", path, builder.line_no)
        try:
            suite.add_test(builder.build())
        except (TypeError, ValueError) as e:
            raise ParseError(str(e), path, builder.line_no)

    for line_no, line in enumerate(test_content.split("\n"), start=1):
        if line.startswith("=== TEST"):
            close_section()
            close_case()
            builder = _CaseBuilder(parse_title(line), line_no)
            current_section = "description"
            section_start = line_no
            section_content = []
            continue

        if line.startswith("--- "):
            close_section()
            section_content = []
            section_start = line_no
            if builder is None:
                raise ParseError("section before any '=== TEST' line", path, line_no)

            header = line[4:].strip()
            if ":" in header:
                # one line section
                name, value = header.split(":", 1)
                current_section = name.strip()
                section_content = [value]
            else:
                current_section = header
            if current_section not in SECTIONS:
                raise ParseError(f"unknown section {current_section!r}", path, line_no)
            continue

        # accumulate content for current section
        if current_section:
            section_content.append(line)

    close_section()
    close_case()
    return suite


def parse_test_from_file(file_path):
    with open(file_path, "r", encoding="utf-8") as fp:
        test_content = fp.read()
    return parse_test(test_content, path=str(file_path))
