"""
Team invitation email template for GladiatorRX
"""
from html import escape

from app.templates.layout import render_layout, render_button, render_note


ROLE_LABELS = {
    'OWNER': 'Owner',
    'ADMIN': 'Admin',
    'MEMBER': 'Member',
    'VIEWER': 'Viewer',
}


def get_invitation_email_body(
    inviter_name: str,
    organization_name: str,
    role: str,
    accept_url: str
) -> str:
    """
    Generate HTML invitation email body

    Args:
        inviter_name: Name of the person sending the invitation
        organization_name: Name of the organization
        role: Role being assigned (ADMIN, MEMBER, VIEWER)
        accept_url: URL to accept the invitation

    Returns:
        HTML email body
    """
    role_label = ROLE_LABELS.get(role, role)
    inviter = escape(inviter_name or "A teammate")
    organization = escape(organization_name)

    note = render_note(
        '<strong style="color: #ffffff;">Security Note:</strong> This invitation link will expire in 7 days. '
        "If you didn't expect this invitation, you can safely ignore this email."
    )

    content = f"""
      <h2 style="margin: 0 0 20px; color: #ffffff; font-size: 24px; font-weight: 600;">You've Been Invited!</h2>
      <p style="margin: 0 0 20px; color: #a1a1aa; font-size: 16px; line-height: 1.6;">
        <strong style="color: #ffffff;">{inviter}</strong> has invited you to join <strong style="color: #06b6d4;">{organization}</strong> on GladiatorRX as a <strong style="color: #06b6d4;">{escape(role_label)}</strong>.
      </p>
      <p style="margin: 0 0 30px; color: #a1a1aa; font-size: 16px; line-height: 1.6;">
        GladiatorRX helps organizations monitor and respond to data breaches in real-time. Join your team to start protecting your organization's data.
      </p>
{render_button(accept_url, "Accept Invitation")}
{note}"""

    return render_layout(f"You're Invited to Join {organization}", content)


def get_invitation_subject(organization_name: str) -> str:
    """Generate email subject for invitation"""
    return f"You've been invited to join {organization_name}"
