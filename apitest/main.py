#!/usr/bin/env python3

import glob
import json
import os
import sys
from dataclasses import asdict

import click

from apitest.client import new_client, wait_application_ready
from apitest.config import get_settings, load_settings, set_settings
from apitest.errors import HardAbort, ParseError
from apitest.evaluate import execute_api_tests
from apitest.jobs import RedisJobQueue, get_jobs
from apitest.logging_setup import configure_logging
from apitest.mail import mails_from_log, normalize_mail_for_comparison
from apitest.parser import parse_test_from_file
from apitest.report import Reporter

EXIT_FAILURES = 1
EXIT_ABORT = 2


def scan_test_files(directory):
    """Scan for .t test files in the specified directory's 't' subdirectory"""
    test_dir = os.path.join(directory, "t")
    if not os.path.exists(test_dir):
        click.echo(f"Test directory not found: {test_dir}", err=True)
        return []
    return sorted(glob.glob(os.path.join(test_dir, "*.t")))


@click.group()
@click.option("--domain", default=None, help="main domain of the test deployment")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(domain, log_level):
    configure_logging(log_level.upper())
    set_settings(load_settings().override(domain=domain))


@main.command()
@click.option("--directory", "-d", default=".", help="directory of running test")
@click.option("--update-expected-results", is_flag=True, default=False,
              help="record responses as the new expected results")
@click.option("--wait-ready/--no-wait-ready", default=False,
              help="wait for the deployment to be ready first")
def run(directory, update_expected_results, wait_ready):
    """Execute the test cases of DIRECTORY/t/*.t"""
    settings = get_settings()
    if update_expected_results:
        settings = settings.override(update_expected_results=True)
        set_settings(settings)

    test_files = scan_test_files(directory)
    if not test_files:
        click.echo("No test files found", err=True)
        sys.exit(EXIT_FAILURES)

    reporter = Reporter()
    try:
        if wait_ready:
            wait_application_ready(settings=settings)
        for test_file in test_files:
            click.echo(f"\nProcessing test file: {test_file}")
            suite = parse_test_from_file(test_file)
            execute_api_tests(test_file, suite.tests, client=new_client(settings),
                              reporter=reporter, settings=settings)
    except ParseError as e:
        click.echo(f"Invalid test file: {e}", err=True)
        sys.exit(EXIT_ABORT)
    except HardAbort as e:
        click.echo(f"Aborting test run:\n{e}", err=True)
        sys.exit(EXIT_ABORT)

    for check in reporter.failures:
        click.echo(f"not ok - {check.label}")
    click.echo(reporter.summary())
    if not reporter.passed:
        sys.exit(EXIT_FAILURES)


@main.command("wait-ready")
def wait_ready():
    """Wait for the deployment to answer and its static assets to be built."""
    try:
        wait_application_ready()
    except HardAbort as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_ABORT)
    click.echo("ready")


@main.command()
@click.argument("task")
@click.option("--after", "created_after", type=float, default=0, help="creation timestamp lower bound")
@click.option("--max-wait", type=float, default=60, show_default=True, help="seconds to wait at most")
@click.option("--redis-url", default=None, help="job store, defaults to OFFTEST_REDIS_URL")
def jobs(task, created_after, max_wait, redis_url):
    """Wait for the jobs of TASK and print them, one json object per line."""
    queue = RedisJobQueue.from_url(redis_url)
    try:
        for job in get_jobs(task, created_after, max_wait, queue=queue):
            click.echo(json.dumps(asdict(job)))
    finally:
        queue.close()


@main.command()
@click.option("--log", "log_path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="log file, defaults to OFFTEST_LOG_PATH")
def mails(log_path):
    """Print the mails found in a log file, normalized for comparison."""
    log_path = log_path or get_settings().log_path
    with open(log_path, "r", encoding="utf-8", errors="replace") as fp:
        text = fp.read()
    normalized = [normalize_mail_for_comparison(mail) for mail in mails_from_log(text)]
    click.echo(json.dumps(normalized, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
