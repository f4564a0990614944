"""
Password reset email template
"""
from html import escape

from app.templates.layout import render_layout, render_button, render_note


def get_password_reset_email_body(name: str, reset_url: str) -> str:
    content = f"""
      <h2 style="margin: 0 0 20px; color: #ffffff; font-size: 24px; font-weight: 600;">Reset your password</h2>
      <p style="margin: 0 0 30px; color: #a1a1aa; font-size: 16px; line-height: 1.6;">
        Hi <strong style="color: #ffffff;">{escape(name or "there")}</strong>, we received a request to reset the password of your GladiatorRX account.
      </p>
{render_button(reset_url, "Reset Password")}
{render_note("This link expires in 1 hour and can only be used once. If you did not request a reset, you can safely ignore this email.")}"""

    return render_layout("Reset your GladiatorRX password", content)


def get_password_reset_subject() -> str:
    return "Reset your GladiatorRX password"
