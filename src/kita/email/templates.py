"""
Email templates for KITA Spaces.

All templates use inline CSS for maximum email client compatibility.
Light card layout with the KITA teal accent.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape

# Color constants
BG_PAGE = "#F5F7F6"
BG_CARD = "#FFFFFF"
BG_SURFACE = "#EEF6F4"
ACCENT = "#0B8A7A"
TEXT_PRIMARY = "#1F2A2E"
TEXT_SECONDARY = "#5B6B70"
BORDER = "#DDE5E3"

APP_NAME = "KITA Spaces"


def _base_layout(content: str) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {ACCENT};">{APP_NAME}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 40px 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                This email was sent by {APP_NAME}.<br>
                                If you didn't expect this email, you can safely ignore it.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _detail_rows(rows: list[tuple[str, str]]) -> str:
    """Render label/value pairs as a summary box."""
    cells = "".join(
        f'<tr><td style="color: {TEXT_SECONDARY}; font-size: 14px; padding: 4px 0;">{escape(label)}</td>'
        f'<td align="right" style="color: {TEXT_PRIMARY}; font-size: 14px; font-weight: 600; padding: 4px 0;">'
        f"{escape(value)}</td></tr>"
        for label, value in rows
    )
    return (
        f'<table role="presentation" width="100%" style="background-color: {BG_SURFACE}; '
        f'border-radius: 8px; padding: 16px; margin: 24px 0;">{cells}</table>'
    )


def password_reset_code(name: str, code: str, expires_minutes: str = "10") -> tuple[str, str, str]:
    """
    Password reset code.

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"Password Reset Code - {APP_NAME}"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">Reset your password</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {escape(name)},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 24px 0;">
    Use the code below to reset your {APP_NAME} password.
</p>
<p style="text-align: center; font-size: 32px; font-weight: 700; letter-spacing: 8px; color: {ACCENT}; margin: 24px 0;">{escape(code)}</p>
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5; margin: 24px 0 0 0;">
    This code expires in <strong style="color: {TEXT_PRIMARY};">{escape(expires_minutes)} minutes</strong>.
    If you didn't request a reset, your password will remain unchanged.
</p>"""
    text_body = (
        f"Hi {name},\n\n"
        f"Your {APP_NAME} password reset code is: {code}\n\n"
        f"This code expires in {expires_minutes} minutes.\n\n"
        f"If you didn't request a password reset, please ignore this email. "
        f"Your password will remain unchanged.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body


def password_changed(name: str) -> tuple[str, str, str]:
    """
    Password changed notification.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Your password has been changed"
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">Password changed</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {escape(name)},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 24px 0;">
    Your {APP_NAME} password was successfully changed.
</p>
<p style="color: {TEXT_SECONDARY}; font-size: 14px; line-height: 1.5; margin: 0;">
    If you didn't make this change, contact us right away.
</p>"""
    text_body = (
        f"Hi {name},\n\n"
        f"Your {APP_NAME} password was successfully changed.\n\n"
        f"If you didn't make this change, contact us right away.\n\n"
        f"-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body


def membership_pending(
    name: str,
    plan_name: str,
    amount: str,
    payment_reference: str,
    payment_method: str,
) -> tuple[str, str, str]:
    """
    Registration received, payment awaiting verification.

    Returns:
        (subject, html_body, text_body)
    """
    subject = "Registration Received - Payment Verification Pending"
    rows = [
        ("Plan", plan_name),
        ("Amount", f"PHP {amount}"),
        ("Payment method", payment_method),
        ("Payment reference", payment_reference),
    ]
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">We received your registration</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {escape(name)},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    Thanks for signing up. Our team is verifying your payment; your membership
    activates as soon as it is confirmed.
</p>
{_detail_rows(rows)}
<p style="color: {TEXT_SECONDARY}; font-size: 13px; line-height: 1.5; margin: 0;">
    Keep your payment reference for any follow-up.
</p>"""
    text_body = (
        f"Hi {name},\n\n"
        f"We received your {APP_NAME} registration and are verifying your payment.\n\n"
        + "".join(f"{label}: {value}\n" for label, value in rows)
        + f"\n-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body


def membership_free(
    name: str,
    plan_name: str,
    coupon_code: str,
    start_date: str,
    end_date: str,
) -> tuple[str, str, str]:
    """
    Membership activated immediately (fully discounted).

    Returns:
        (subject, html_body, text_body)
    """
    subject = f"Welcome to {APP_NAME}! Your Membership is Active"
    rows = [
        ("Plan", plan_name),
        ("Coupon", coupon_code),
        ("Start date", start_date),
        ("End date", end_date),
    ]
    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 24px; font-weight: 700; margin: 0 0 16px 0;">Welcome to {APP_NAME}!</h1>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 8px 0;">Hi {escape(name)},</p>
<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0;">
    Your membership is active. See you at the space!
</p>
{_detail_rows(rows)}"""
    text_body = (
        f"Hi {name},\n\n"
        f"Your {APP_NAME} membership is active.\n\n"
        + "".join(f"{label}: {value}\n" for label, value in rows)
        + f"\n-- The {APP_NAME} Team"
    )
    return subject, _base_layout(content), text_body
