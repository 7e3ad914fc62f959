from html import escape
from urllib.parse import quote


def render_otp(code: str, minutes: int) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; line-height:1.5">'
        "<h2>Verify your email</h2>"
        "<p>Use the One-Time Password (OTP) below to verify your email address.</p>"
        f'<p style="font-size:24px; letter-spacing:3px;"><strong>{code}</strong></p>'
        f"<p>This code expires in {minutes} minutes.</p>"
        "</div>"
    )


def render_admin_approval(*, email: str, username: str | None, code: str, minutes: int, base_url: str) -> str:
    link = f"{base_url}/verify-email?email={quote(email)}"
    return (
        '<div style="font-family: Arial, sans-serif; line-height:1.5">'
        "<h2>New Admin Registration Approval</h2>"
        "<p>A new account registration needs approval.</p>"
        "<ul>"
        f"<li><strong>Email:</strong> {escape(email)}</li>"
        f"<li><strong>Username:</strong> {escape(username or '-')}</li>"
        "</ul>"
        "<p>Use this OTP code to approve:</p>"
        f'<p style="font-size:24px; letter-spacing:3px;"><strong>{code}</strong></p>'
        f"<p>This code expires in {minutes} minutes.</p>"
        "<p>You can open the approval page here (email pre-filled):</p>"
        f'<p><a href="{escape(link)}">Open Approval Page</a></p>'
        "<p>After approval, the user will be able to sign in.</p>"
        "</div>"
    )


def render_password_reset(link: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; line-height:1.5">'
        "<h2>Password reset</h2>"
        "<p>Click the button below to reset your password:</p>"
        f'<p><a href="{escape(link)}">Reset Password</a></p>'
        "<p>If you didn't request this, you can safely ignore this email.</p>"
        "</div>"
    )
