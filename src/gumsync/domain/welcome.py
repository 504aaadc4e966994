"""Welcome message rendering for newly provisioned accounts."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_EMAIL_SUBJECT = "Welcome to {{site_name}}!"

DEFAULT_EMAIL_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <style>
        body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
        .container { max-width: 600px; margin: 0 auto; padding: 20px; }
        .header { background: #0073aa; color: white; padding: 20px; text-align: center; }
        .content { background: #f9f9f9; padding: 30px; }
        .credentials { background: white; padding: 15px; border-left: 4px solid #0073aa; }
        .footer { text-align: center; padding: 20px; color: #666; font-size: 12px; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>Welcome to {{site_name}}!</h1></div>
        <div class="content">
            <p>Hi there!</p>
            <p>Thank you for purchasing <strong>{{product_name}}</strong>!
            Your account has been created automatically.</p>
            <div class="credentials">
                <h3>Your Login Credentials:</h3>
                <p><strong>Username:</strong> {{username}}</p>
                <p><strong>Password:</strong> {{password}}</p>
                <p><strong>Email:</strong> {{email}}</p>
            </div>
            <p><a href="{{login_url}}">Login to Your Account</a></p>
            <p>If you prefer to choose your own password, use
            <a href="{{password_reset_url}}">this reset link</a>.</p>
            <p><strong>Important:</strong> Please keep this email safe as it contains
            your login credentials.</p>
        </div>
        <div class="footer">
            <p>&copy; {{site_name}} - <a href="{{site_url}}">{{site_url}}</a></p>
        </div>
    </div>
</body>
</html>
"""


@dataclass(frozen=True, slots=True)
class WelcomeTemplate:
    subject: str = DEFAULT_EMAIL_SUBJECT
    body: str = DEFAULT_EMAIL_TEMPLATE
    site_name: str = ""
    site_url: str = ""
    login_url: str = ""
    password_reset_url: str = ""

    def render(
        self,
        *,
        username: str,
        credential: str,
        email: str,
        product_name: str,
    ) -> tuple[str, str]:
        """Return ``(subject, body)`` with every ``{{tag}}`` substituted.

        ``{{password_reset_url}}`` falls back to the login page when no reset
        page is configured.
        """

        tags = {
            "{{site_name}}": self.site_name,
            "{{site_url}}": self.site_url,
            "{{product_name}}": product_name,
            "{{username}}": username,
            "{{password}}": credential,
            "{{email}}": email,
            "{{login_url}}": self.login_url,
            "{{password_reset_url}}": self.password_reset_url or self.login_url,
        }
        return _substitute(self.subject, tags), _substitute(self.body, tags)


def _substitute(text: str, tags: dict[str, str]) -> str:
    for tag, value in tags.items():
        text = text.replace(tag, value)
    return text
