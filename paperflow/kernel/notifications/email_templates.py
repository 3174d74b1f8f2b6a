"""
HTML and plain-text bodies for notification emails.
"""

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

# (accent colour, header glyph) per notification type
_TYPE_STYLES = {
    "approval": ("#10b981", "&#10003;"),
    "rejection": ("#ef4444", "&#9888;"),
    "review_request": ("#3b82f6", "&#128203;"),
    "feedback": ("#8b5cf6", "&#128172;"),
    "role_assigned": ("#10b981", "&#128100;"),
}
_DEFAULT_STYLE = ("#6b7280", "&#128276;")

_FOOTER_TEXT = "This is an automated notification from the Exam Paper Management System."


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _link(base_url: str, file_id: Optional[str], action_path: Optional[str]) -> str:
    base = base_url.rstrip("/")
    if action_path:
        return f"{base}/{action_path.lstrip('/')}"
    if file_id:
        return f"{base}/view/{file_id}"
    return f"{base}/dashboard"


def render_notification_email(
    *,
    notification_type: str,
    title: str,
    message: str,
    recipient_name: Optional[str],
    base_url: str,
    file_id: Optional[str] = None,
    file_name: Optional[str] = None,
    action_path: Optional[str] = None,
    sent_at: Optional[datetime] = None,
) -> RenderedEmail:
    """Render one notification for email delivery.

    Every interpolated value is HTML-escaped in the HTML body; the text body
    carries the raw values.
    """
    colour, glyph = _TYPE_STYLES.get(notification_type, _DEFAULT_STYLE)
    url = _link(base_url, file_id, action_path)
    settings_url = f"{base_url.rstrip('/')}/settings"
    name = recipient_name or "User"
    date = (sent_at or datetime.now()).strftime("%Y-%m-%d %H:%M")

    file_block = ""
    if file_name:
        file_block = (
            f'<div style="background-color:#f9fafb;border-left:4px solid {colour};'
            f'padding:16px;margin:20px 0;border-radius:4px;">'
            f'<p style="margin:0;color:#1f2937;font-size:14px;font-weight:600;">'
            f"File: {escape(file_name)}</p></div>"
        )

    html = f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{escape(title)}</title>
</head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;background-color:#f3f4f6;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:12px;">
        <tr>
          <td style="background:{colour};padding:30px;border-radius:12px 12px 0 0;text-align:center;">
            <h1 style="margin:0;color:#ffffff;font-size:24px;">{glyph} {escape(title)}</h1>
          </td>
        </tr>
        <tr>
          <td style="padding:40px 30px;">
            <p style="color:#374151;font-size:16px;">Hello {escape(name)},</p>
            <p style="color:#4b5563;font-size:15px;">{escape(message)}</p>
            {file_block}
            <div style="text-align:center;margin:30px 0;">
              <a href="{escape(url, quote=True)}" style="display:inline-block;background-color:{colour};color:#ffffff;text-decoration:none;padding:14px 32px;border-radius:8px;">View in Dashboard</a>
            </div>
            <p style="color:#9ca3af;font-size:12px;text-align:center;">{_FOOTER_TEXT}<br>Sent on {date}</p>
          </td>
        </tr>
        <tr>
          <td style="background-color:#f9fafb;padding:20px 30px;text-align:center;">
            <p style="margin:0;color:#6b7280;font-size:12px;">
              You're receiving this email because you have email notifications enabled.<br>
              <a href="{escape(settings_url, quote=True)}">Manage email preferences</a>
            </p>
          </td>
        </tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""

    lines = [title, "", f"Hello {name},", "", message, ""]
    if file_name:
        lines += [f"File: {file_name}", ""]
    lines += [
        f"View in Dashboard: {url}",
        "",
        "---",
        _FOOTER_TEXT,
        f"Manage email preferences: {settings_url}",
    ]

    return RenderedEmail(subject=title, html=html, text="\n".join(lines))
