from apitest.client import (construct_test_url, create_user, edit_product, edit_user, get_page,
                            html_displays_error, login, new_client, post_form,
                            wait_application_ready, wait_dynamic_front, wait_server)
from apitest.evaluate import execute_api_tests
from apitest.fakeserver import fake_http_server
from apitest.jobs import get_jobs
from apitest.logtail import tail_log_read, tail_log_start
from apitest.mail import mail_to_text, mails_from_log, normalize_mail_for_comparison
