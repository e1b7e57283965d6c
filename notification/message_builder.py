import html
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel

SMS_MAX_LENGTH = 160


class EmailContent(BaseModel):
    subject: str
    html: str
    text: str


class SmsContent(BaseModel):
    body: str


class PushContent(BaseModel):
    title: str
    body: str
    data: Dict[str, str]
    android_priority: str
    android_channel: str


class NotificationMessageBuilder:
    """Renders a dispatched notification for each outbound channel."""

    def __init__(self, brand_name: str = "LocalPro", base_url: Optional[str] = None):
        self.brand_name = brand_name
        self.base_url = (base_url or "").rstrip('/')

    def build_sms(self, title: str, message: str, body: Optional[str] = None) -> SmsContent:
        """Single-segment SMS: `<brand>: <title>\\n<message>` cut to 160 characters."""
        text = body if body else f"{self.brand_name}: {title}\n{message}"
        return SmsContent(body=text[:SMS_MAX_LENGTH])

    def build_email(
        self,
        title: str,
        message: str,
        first_name: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        subject: Optional[str] = None,
        html_body: Optional[str] = None,
    ) -> EmailContent:
        data = data or {}
        text = f"Hi {first_name or 'there'},\n\n{title}\n\n{message}"
        if html_body is None:
            html_body = self._render_email_html(title, message, first_name, data)
        return EmailContent(subject=subject or title, html=html_body, text=text)

    def build_push(
        self,
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: str = "medium",
    ) -> PushContent:
        # FCM data values must be strings
        flat = {'type': notification_type}
        for key, value in (data or {}).items():
            if value is None:
                continue
            flat[key] = value if isinstance(value, str) else str(value)

        return PushContent(
            title=title,
            body=message,
            data=flat,
            android_priority='high' if priority in ('urgent', 'high') else 'normal',
            android_channel='messages' if 'message' in notification_type else 'notifications',
        )

    def action_url(self, data: Dict[str, Any]) -> Optional[str]:
        url = data.get('url') or data.get('action_url')
        if not url:
            return None
        url = str(url)
        if url.startswith('/') and self.base_url:
            url = f"{self.base_url}{url}"
        if not url.startswith(('http://', 'https://')):
            return None
        return url

    def _render_email_html(
        self,
        title: str,
        message: str,
        first_name: Optional[str],
        data: Dict[str, Any]
    ) -> str:
        safe_brand = html.escape(self.brand_name)
        safe_title = html.escape(title)
        safe_message = html.escape(message)
        safe_name = html.escape(first_name or 'there')
        year = datetime.now(timezone.utc).year

        button = ""
        url = self.action_url(data)
        if url:
            label = html.escape(str(data.get('action_text') or 'View Details'))
            button = f'<a href="{html.escape(url, quote=True)}" class="button">{label}</a>'

        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{safe_title}</title>
    <style>
        body {{ font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; margin: 0; padding: 0; background-color: #f4f4f4; }}
        .container {{ max-width: 600px; margin: 0 auto; background-color: #ffffff; }}
        .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); padding: 30px; text-align: center; }}
        .header h1 {{ color: #ffffff; margin: 0; font-size: 24px; }}
        .content {{ padding: 30px; color: #333333; line-height: 1.6; }}
        .footer {{ background-color: #f8f9fa; padding: 20px; text-align: center; color: #6c757d; font-size: 12px; }}
        .button {{ display: inline-block; padding: 12px 24px; background: #667eea; color: #ffffff; text-decoration: none; border-radius: 5px; margin: 15px 0; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header"><h1>{safe_brand}</h1></div>
        <div class="content">
            <p>Hi {safe_name},</p>
            <h2>{safe_title}</h2>
            <p>{safe_message}</p>
            {button}
        </div>
        <div class="footer">
            <p>&copy; {year} {safe_brand}. All rights reserved.</p>
            <p>You received this email because you have an account with {safe_brand}.</p>
        </div>
    </div>
</body>
</html>"""
