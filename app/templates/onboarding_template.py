"""
Waitlist approval email: carries the single-use onboarding link
"""
from html import escape

from app.templates.layout import render_layout, render_button, render_note


def get_onboarding_email_body(name: str, onboarding_url: str) -> str:
    content = f"""
      <h2 style="margin: 0 0 20px; color: #ffffff; font-size: 24px; font-weight: 600;">You're off the waitlist!</h2>
      <p style="margin: 0 0 20px; color: #a1a1aa; font-size: 16px; line-height: 1.6;">
        Hi <strong style="color: #ffffff;">{escape(name or "there")}</strong>, your request to join GladiatorRX has been approved.
      </p>
      <p style="margin: 0 0 30px; color: #a1a1aa; font-size: 16px; line-height: 1.6;">
        Set up your organization and password to start monitoring your exposure.
      </p>
{render_button(onboarding_url, "Complete Registration")}
{render_note("This link can be used once and expires in 24 hours.")}"""

    return render_layout("Welcome to GladiatorRX", content)


def get_onboarding_subject() -> str:
    return "Your GladiatorRX access is ready"
