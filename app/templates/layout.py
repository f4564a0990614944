"""
Shared HTML frame for GladiatorRX transactional emails
"""
from datetime import datetime


def render_layout(title: str, content_html: str) -> str:
    """
    Wrap email content in the branded GladiatorRX frame

    Args:
        title: Document title
        content_html: Inner HTML (already escaped where needed)

    Returns:
        Complete HTML document
    """
    year = datetime.now().year

    return f"""
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; background-color: #000000;">
  <div style="max-width: 600px; margin: 0 auto; padding: 40px 20px;">
    <div style="background: linear-gradient(135deg, #000000 0%, #0a4a52 100%); border-radius: 12px 12px 0 0; padding: 40px 30px; text-align: center;">
      <h1 style="margin: 0; color: #06b6d4; font-size: 32px; font-weight: 700;">GladiatorRX</h1>
      <p style="margin: 10px 0 0; color: #67e8f9; font-size: 14px;">Data Breach Intelligence Platform</p>
    </div>

    <div style="background-color: #0a0a0a; border: 1px solid #164e63; border-top: none; border-radius: 0 0 12px 12px; padding: 40px 30px;">
{content_html}
    </div>

    <div style="margin-top: 30px; text-align: center;">
      <p style="margin: 0 0 10px; color: #52525b; font-size: 13px;">&copy; {year} GladiatorRX. All rights reserved.</p>
      <p style="margin: 0; color: #52525b; font-size: 13px;">This is an automated email. Please do not reply to this message.</p>
    </div>
  </div>
</body>
</html>
    """.strip()


def render_button(url: str, label: str) -> str:
    return f"""
      <div style="text-align: center; margin: 40px 0;">
        <a href="{url}" style="display: inline-block; background-color: #06b6d4; color: #000000; text-decoration: none; padding: 16px 40px; border-radius: 8px; font-weight: 600; font-size: 16px;">{label}</a>
      </div>
      <div style="margin-top: 30px; padding-top: 30px; border-top: 1px solid #27272a;">
        <p style="margin: 0 0 10px; color: #71717a; font-size: 14px;">Or copy and paste this link into your browser:</p>
        <p style="margin: 0; word-break: break-all;"><a href="{url}" style="color: #06b6d4; text-decoration: none; font-size: 14px;">{url}</a></p>
      </div>"""


def render_note(text: str) -> str:
    return f"""
      <div style="margin-top: 40px; padding: 20px; background-color: #18181b; border-left: 3px solid #06b6d4; border-radius: 4px;">
        <p style="margin: 0; color: #a1a1aa; font-size: 13px; line-height: 1.5;">{text}</p>
      </div>"""
