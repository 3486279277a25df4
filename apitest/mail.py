import re

# delimiters the application writes around each mail it logs in test mode
LOG_EMAIL_START = "---- EMAIL START ----"
LOG_EMAIL_END = "---- EMAIL END ----"

_MAILS_RE = re.compile(re.escape(LOG_EMAIL_START) + r"(.*?)" + re.escape(LOG_EMAIL_END), re.S)
_BOUNDARY_RE = re.compile(r"boundary=([^ ,\n\t]+)")
_DATE_RE = re.compile(r"\d\d\d\d-\d\d-\d\d")
_DATE_HEADER_RE = re.compile(r"^Date: .+")


def mails_from_log(text):
    """Retrieve the mails in a log extract, in the order they were logged."""
    return _MAILS_RE.findall(text)


def mail_to_text(mail):
    """
    Make a mail easier to search by removing quoted-printable formatting:
    soft line breaks are joined and "=3D" becomes "=".
    """
    text = mail.replace("=\n", "")
    return text.replace("=3D", "=")


def normalize_mail_for_comparison(mail):
    """
    Replace the parts of a mail that vary from run to run.

    Returns:
        list: the lines of the mail, ready to be stored as json
    """
    text = mail_to_text(mail)
    boundaries = [b.strip('"') for b in _BOUNDARY_RE.findall(text)]
    for boundary in boundaries:
        if boundary:
            text = text.replace(boundary, "boundary")
    text = _DATE_RE.sub("--date--", text)
    lines = text.split("\n")
    while lines and lines[-1] == "":
        lines.pop()
    return [_DATE_HEADER_RE.sub("Date: ***", line) for line in lines]
