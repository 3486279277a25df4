"""Recorded expected results, one file per test case.

Results live next to the test file that produced them, in
``expected_test_results/<test file name>/<test case>.json`` (or ``.txt``).
Running in update mode rewrites them from the current responses.
"""
import json
import logging
import os
import shutil
from dataclasses import dataclass

from apitest.config import get_settings

logger = logging.getLogger(__name__)

UPDATE_HINT = "run with --update-expected-results (or OFFTEST_UPDATE_EXPECTED_RESULTS=1) to record it"

# fields that change at each run
PRODUCT_VOLATILE_FIELDS = (
    "created_t",
    "last_modified_t",
    "last_updated_t",
    "last_image_t",
    "entry_dates_tags",
    "last_edit_dates_tags",
    "last_image_dates_tags",
    "update_key",
)


@dataclass(frozen=True)
class ExpectedResults:
    test_id: str
    test_dir: str
    expected_result_dir: str
    update: bool

    def path_for(self, test_case, extension):
        return os.path.join(self.expected_result_dir, f"{test_case}.{extension}")


def init_expected_results(file, update=None):
    """Locate the expected results of a test file, resetting them in update mode."""
    if update is None:
        update = get_settings().update_expected_results
    file = os.path.abspath(os.fspath(file))
    test_dir = os.path.dirname(file)
    test_id = os.path.splitext(os.path.basename(file))[0]
    expected_result_dir = os.path.join(test_dir, "expected_test_results", test_id)
    if update:
        shutil.rmtree(expected_result_dir, ignore_errors=True)
        os.makedirs(expected_result_dir, exist_ok=True)
    return ExpectedResults(test_id, test_dir, expected_result_dir, update)


def _dump_json(obj):
    return json.dumps(obj, indent=4, sort_keys=True, ensure_ascii=False) + "\n"


def compare_to_expected_results(obj, expected_results_file, update, test_case=None):
    """
    Compare a decoded json response to the recorded one.

    Returns:
        bool: True when identical, or when the result was just recorded
    """
    if update:
        os.makedirs(os.path.dirname(expected_results_file), exist_ok=True)
        with open(expected_results_file, "w", encoding="utf-8") as fp:
            fp.write(_dump_json(obj))
        return True

    try:
        with open(expected_results_file, "r", encoding="utf-8") as fp:
            expected = json.load(fp)
    except FileNotFoundError:
        logger.warning("%s: could not load expected result %s, %s",
                       test_case, expected_results_file, UPDATE_HINT)
        return False

    if obj != expected:
        logger.warning("%s: result differs from %s\ngot: %s\nexpected: %s",
                       test_case, expected_results_file, _dump_json(obj), _dump_json(expected))
        return False
    return True


def compare_file_to_expected_results(content, expected_results_file, update, test_case=None):
    """Same as compare_to_expected_results, for a verbatim text response."""
    if update:
        os.makedirs(os.path.dirname(expected_results_file), exist_ok=True)
        with open(expected_results_file, "w", encoding="utf-8", newline="") as fp:
            fp.write(content)
        return True

    try:
        with open(expected_results_file, "r", encoding="utf-8", newline="") as fp:
            expected = fp.read()
    except FileNotFoundError:
        logger.warning("%s: could not load expected result %s, %s",
                       test_case, expected_results_file, UPDATE_HINT)
        return False

    if content != expected:
        logger.warning("%s: result differs from %s\ngot:\n%s\nexpected:\n%s",
                       test_case, expected_results_file, content, expected)
        return False
    return True


def normalize_product_for_test_comparison(product):
    """Remove the fields of a product that change from run to run, in place."""
    if not isinstance(product, dict):
        return product
    for field in PRODUCT_VOLATILE_FIELDS:
        product.pop(field, None)
    images = product.get("images")
    if isinstance(images, dict):
        for image in images.values():
            if isinstance(image, dict):
                image.pop("uploaded_t", None)
    return product


def normalize_products_for_test_comparison(products):
    if isinstance(products, list):
        for product in products:
            normalize_product_for_test_comparison(product)
    return products
