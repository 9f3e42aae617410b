import re

from license_server.config import Settings
from license_server.security import check_admin_password, issue

TOKEN_RE = re.compile(r"^[A-Z]+-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}-[0-9A-F]{4}$")


def test_issue_uses_trial_prefix_for_trials():
    token = issue("a@x.com", "trial")
    assert token.startswith("TRIAL-")
    assert TOKEN_RE.match(token)


def test_issue_uses_configured_prefix():
    settings = Settings(TOKEN_PREFIX="ACME", SECRET_KEY="k")
    token = issue("a@x.com", "yearly", settings=settings)
    assert token.startswith("ACME-")
    assert TOKEN_RE.match(token)


def test_tokens_are_not_repeated_for_identical_input():
    tokens = {issue("a@x.com", "monthly") for _ in range(200)}
    assert len(tokens) == 200


def test_admin_password_check():
    assert check_admin_password("secret", "secret")
    assert check_admin_password(" secret ", "secret")
    assert not check_admin_password("wrong", "secret")
    assert not check_admin_password("", "secret")
    # an unset server password never authenticates
    assert not check_admin_password("", "")
    assert not check_admin_password("anything", "")
