from __future__ import annotations

from gumsync.domain.welcome import DEFAULT_EMAIL_TEMPLATE, WelcomeTemplate

TAGS = "{{login_url}} | {{password_reset_url}}"


def _render(template: WelcomeTemplate) -> str:
    _, body = template.render(
        username="jane.doe@example.com",
        credential="s3cret",
        email="jane.doe@example.com",
        product_name="Course",
    )
    return body


def test_password_reset_url_uses_the_configured_page() -> None:
    template = WelcomeTemplate(
        body=TAGS,
        login_url="https://shop.example.com/login",
        password_reset_url="https://shop.example.com/password-reset",
    )

    assert _render(template) == (
        "https://shop.example.com/login | https://shop.example.com/password-reset"
    )


def test_password_reset_url_falls_back_to_the_login_page() -> None:
    template = WelcomeTemplate(body=TAGS, login_url="https://shop.example.com/login")

    assert _render(template) == "https://shop.example.com/login | https://shop.example.com/login"


def test_default_template_leaves_no_tag_unrendered() -> None:
    template = WelcomeTemplate(
        site_name="Example Shop",
        site_url="https://shop.example.com",
        login_url="https://shop.example.com/login",
    )

    subject, body = template.render(
        username="jane.doe@example.com",
        credential="s3cret",
        email="jane.doe@example.com",
        product_name="Course",
    )

    assert "{{password_reset_url}}" in DEFAULT_EMAIL_TEMPLATE
    assert subject == "Welcome to Example Shop!"
    assert "{{" not in body
    assert '<a href="https://shop.example.com/login">this reset link</a>' in body
