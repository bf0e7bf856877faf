"""
Email Templates

HTML and plain text bodies for account and invoice emails.
Every builder returns ``(subject, html_body, plain_text_body)``.
"""

BRAND = "Simple Growth Solutions"


# =============================================================================
# BASE TEMPLATE
# =============================================================================

BASE_HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{subject}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="text-align: center; margin-bottom: 30px;">
        <h1 style="color: #2563eb; margin: 0;">{brand}</h1>
    </div>
    {content}
    <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 30px 0;">
    <p style="font-size: 12px; color: #6b7280; text-align: center;">{footer}</p>
</body>
</html>
"""

DEFAULT_FOOTER = f"This is an automated email from {BRAND}. Please do not reply."


def _button(url: str, label: str) -> str:
    return (
        '<div style="text-align: center; margin: 30px 0;">'
        f'<a href="{url}" style="display: inline-block; background: #2563eb; color: white; '
        'padding: 12px 30px; text-decoration: none; border-radius: 6px; font-weight: 500;">'
        f"{label}</a></div>"
    )


def _render(subject: str, content: str, footer: str = DEFAULT_FOOTER) -> str:
    return BASE_HTML_TEMPLATE.format(subject=subject, brand=BRAND, content=content, footer=footer)


# =============================================================================
# ACCOUNT TEMPLATES
# =============================================================================

def build_verification_email(name: str, verify_url: str) -> tuple[str, str, str]:
    """Email asking a new user to confirm their address. Link is valid 24 hours."""
    subject = f"Verify Your Email - {BRAND}"
    content = f"""
    <h2 style="color: #1f2937;">Verify Your Email Address</h2>
    <p>Hi {name},</p>
    <p>Thank you for signing up! Please verify your email address by clicking the button below:</p>
    {_button(verify_url, "Verify Email Address")}
    <p>This link will expire in 24 hours. If you didn't create an account, you can safely ignore this email.</p>
    <p>If the button doesn't work, copy and paste this URL into your browser:</p>
    <p style="background: #f3f4f6; padding: 12px; border-radius: 6px; word-break: break-all; font-size: 14px;">{verify_url}</p>
    """
    plain = f"""Hi {name},

Thank you for signing up! Please verify your email address by visiting:

{verify_url}

This link will expire in 24 hours. If you didn't create an account, you can safely ignore this email.
"""
    return subject, _render(subject, content), plain


def build_welcome_email(name: str) -> tuple[str, str, str]:
    """Welcome email sent after signup."""
    name = name or "there"
    subject = f"Welcome to {BRAND}!"
    content = f"""
    <h2 style="color: #1f2937;">Welcome, {name}!</h2>
    <p>Thank you for joining {BRAND}. We're excited to help you grow your business with our suite of tools:</p>
    <ul style="padding-left: 20px;">
        <li><strong>Website Management</strong> - Professional websites built and managed for you</li>
        <li><strong>Cash Flow AI</strong> - Intelligent invoice tracking and recovery</li>
        <li><strong>Cybersecurity Shield</strong> - Protect your online presence</li>
        <li><strong>Business Chauffeur</strong> - AI-powered business intelligence</li>
    </ul>
    <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <p style="margin: 0;"><strong>Next Steps:</strong></p>
        <ol style="margin: 10px 0 0 0; padding-left: 20px;">
            <li>Complete your organization profile</li>
            <li>Choose your services</li>
            <li>Start growing your business!</li>
        </ol>
    </div>
    <p>Best regards,<br>The {BRAND} Team</p>
    """
    plain = f"""Welcome, {name}!

Thank you for joining {BRAND}.

Next steps:
1. Complete your organization profile
2. Choose your services
3. Start growing your business!

Best regards,
The {BRAND} Team
"""
    footer = f"You're receiving this email because you signed up for {BRAND}."
    return subject, _render(subject, content, footer), plain


def build_password_reset_email(reset_url: str) -> tuple[str, str, str]:
    """Password reset link. Valid for 1 hour."""
    subject = f"Reset Your Password - {BRAND}"
    content = f"""
    <h2 style="color: #1f2937;">Reset Your Password</h2>
    <p>We received a request to reset your password. Click the button below to create a new password:</p>
    {_button(reset_url, "Reset Password")}
    <p>This link will expire in 1 hour. If you didn't request a password reset, you can safely ignore this email.</p>
    <p>If the button doesn't work, copy and paste this URL into your browser:</p>
    <p style="background: #f3f4f6; padding: 10px; border-radius: 4px; word-break: break-all; font-size: 14px;">{reset_url}</p>
    """
    plain = f"""We received a request to reset your password.

Reset it here: {reset_url}

This link will expire in 1 hour. If you didn't request a password reset, you can safely ignore this email.
"""
    return subject, _render(subject, content), plain


# =============================================================================
# INVOICE TEMPLATES
# =============================================================================

def get_urgency_color(days_overdue: int) -> str:
    """Red past 30 days, amber when overdue, blue otherwise."""
    if days_overdue > 30:
        return "#dc2626"
    if days_overdue > 0:
        return "#f59e0b"
    return "#2563eb"


def build_invoice_reminder_email(
    client_name: str,
    invoice_number: str,
    amount: str,
    due_date: str,
    days_overdue: int,
) -> tuple[str, str, str]:
    """Payment reminder for an invoice, worded by how late it is."""
    overdue = days_overdue > 0
    subject = (
        f"Payment Overdue: Invoice {invoice_number}"
        if overdue
        else f"Payment Reminder: Invoice {invoice_number}"
    )
    heading = "Payment Overdue" if overdue else "Payment Reminder"
    color = get_urgency_color(days_overdue)
    lead = (
        f"Your invoice is currently {days_overdue} days overdue. Please submit payment as soon as possible."
        if overdue
        else "This is a friendly reminder about your upcoming payment."
    )

    content = f"""
    <h2 style="color: {color};">{heading}</h2>
    <p>Dear {client_name},</p>
    <p>{lead}</p>
    <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; margin: 20px 0;">
        <table style="width: 100%; border-collapse: collapse;">
            <tr><td><strong>Invoice Number:</strong></td><td style="text-align: right;">{invoice_number}</td></tr>
            <tr><td><strong>Amount Due:</strong></td><td style="text-align: right; font-size: 18px; font-weight: bold; color: {color};">{amount}</td></tr>
            <tr><td><strong>Due Date:</strong></td><td style="text-align: right;">{due_date}</td></tr>
        </table>
    </div>
    <p>If you have already sent your payment, please disregard this notice.</p>
    <p>Thank you for your business.</p>
    """
    plain = f"""Dear {client_name},

{lead}

Invoice Number: {invoice_number}
Amount Due: {amount}
Due Date: {due_date}

If you have already sent your payment, please disregard this notice.
"""
    footer = f"This is an automated reminder from {BRAND}."
    return subject, _render(subject, content, footer), plain
