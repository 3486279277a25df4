from apitest.mail import (LOG_EMAIL_START, LOG_EMAIL_END, mails_from_log, mail_to_text,
                          normalize_mail_for_comparison)

MAIL = """From: contact@openfoodfacts.org
To: alice@example.com
Date: Tue, 14 Mar 2023 10:12:55 +0000
Subject: Welcome
Content-Type: multipart/alternative; boundary={boundary}

--{boundary}
Content-Type: text/html; charset=3D"UTF-8"

<a href=3D"http://world.openfoodfacts.localhost/cgi/user.pl?type=3Dedit">Edit your acc=
ount</a> created on {date}
--{boundary}--
"""


def make_mail(boundary="b1a2c3", date="2023-03-14"):
    return MAIL.format(boundary=boundary, date=date)


def test_mail_to_text():
    text = mail_to_text(make_mail())
    assert 'charset="UTF-8"' in text
    assert 'href="http://world.openfoodfacts.localhost/cgi/user.pl?type=edit">Edit your account</a>' in text


def test_mail_to_text_twice_is_same():
    once = mail_to_text(make_mail())
    assert mail_to_text(once) == once


def test_normalize_hides_volatile_parts():
    first = normalize_mail_for_comparison(make_mail("b1a2c3", "2023-03-14"))
    second = normalize_mail_for_comparison(make_mail("zz99yy", "2024-01-02"))
    assert first == second
    assert "Date: ***" in first
    assert "--boundary" in first
    assert "Content-Type: multipart/alternative; boundary=boundary" in first
    assert first[-1] == "--boundary--"
    assert any(line.endswith("created on --date--") for line in first)


def test_normalize_quoted_boundary():
    mail = 'Content-Type: multipart/mixed; boundary="abc123"\n\n--abc123\nhi\n--abc123--\n'
    assert normalize_mail_for_comparison(mail) == [
        'Content-Type: multipart/mixed; boundary="boundary"',
        "",
        "--boundary",
        "hi",
        "--boundary--",
    ]


def test_mails_from_log():
    log = (
        "INFO something\n"
        f"{LOG_EMAIL_START}\nSubject: one\n{LOG_EMAIL_END}\n"
        "INFO between\n"
        f"{LOG_EMAIL_START}\nSubject: two\n{LOG_EMAIL_END}\n"
    )
    assert mails_from_log(log) == ["\nSubject: one\n", "\nSubject: two\n"]
    assert mails_from_log("nothing here") == []
