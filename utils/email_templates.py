"""
HTML email templates for BexMatch
"""
from html import escape


def get_email_base_template(content: str) -> str:
    """Shared layout: header, content block, footer"""
    return f"""
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>BexMatch</title>
    <style>
        body {{
            margin: 0;
            padding: 0;
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
            background-color: #f5f3ff;
            color: #1f2937;
        }}
        .email-container {{
            max-width: 560px;
            margin: 0 auto;
            background-color: #ffffff;
        }}
        .header {{
            background: linear-gradient(135deg, #e11d48 0%, #7c3aed 100%);
            padding: 32px 20px;
            text-align: center;
        }}
        .logo {{
            font-size: 28px;
            font-weight: bold;
            color: #ffffff;
            margin: 0;
        }}
        .content {{
            padding: 36px 28px;
        }}
        .greeting {{
            font-size: 22px;
            font-weight: 700;
            margin: 0 0 16px 0;
        }}
        .message {{
            font-size: 16px;
            line-height: 1.6;
            color: #4b5563;
            margin: 0 0 16px 0;
        }}
        .code {{
            font-size: 34px;
            font-weight: 700;
            letter-spacing: 10px;
            text-align: center;
            background-color: #f3f4f6;
            border-radius: 10px;
            padding: 18px 0;
            margin: 24px 0;
        }}
        .highlight {{
            background-color: #fdf2f8;
            border-left: 4px solid #e11d48;
            padding: 14px;
            margin: 20px 0;
            border-radius: 8px;
        }}
        .button {{
            display: inline-block;
            background: #e11d48;
            color: #ffffff !important;
            text-decoration: none;
            padding: 14px 28px;
            border-radius: 10px;
            font-weight: 600;
            margin: 20px 0;
        }}
        .footer {{
            padding: 24px 20px;
            text-align: center;
            border-top: 1px solid #e5e7eb;
            font-size: 13px;
            color: #6b7280;
        }}
    </style>
</head>
<body>
    <div class="email-container">
        <div class="header">
            <h1 class="logo">BexMatch</h1>
        </div>
        {content}
        <div class="footer">
            You're receiving this email because you have a BexMatch account.
        </div>
    </div>
</body>
</html>
"""


def get_otp_email(otp: str, minutes_valid: int) -> str:
    content = f"""
        <div class="content">
            <h2 class="greeting">Reset your password</h2>
            <p class="message">Use this code to reset your BexMatch password:</p>
            <div class="code">{escape(otp)}</div>
            <p class="message">
                The code expires in {minutes_valid} minutes. If you didn't ask for a reset,
                you can ignore this email.
            </p>
        </div>
    """
    return get_email_base_template(content)


def get_welcome_email(name: str, app_url: str) -> str:
    content = f"""
        <div class="content">
            <h2 class="greeting">Welcome, {escape(name or 'there')}!</h2>
            <p class="message">
                Your account is ready. Finish your profile and add a few photos so
                people can find you.
            </p>
            <div style="text-align: center;">
                <a href="{escape(app_url)}" class="button">Complete your profile</a>
            </div>
        </div>
    """
    return get_email_base_template(content)


def get_payment_success_email(plan_name: str, expires_at: str, app_url: str) -> str:
    """Email template for successful payment confirmation"""
    content = f"""
        <div class="content">
            <h2 class="greeting">Payment successful</h2>
            <p class="message">
                Your <strong>{escape(plan_name)}</strong> plan is now active. Swipes and
                messages are unlimited for the rest of your billing period.
            </p>
            <div class="highlight">
                <p class="message" style="margin: 0;">Your plan runs until {escape(expires_at)}</p>
            </div>
            <div style="text-align: center;">
                <a href="{escape(app_url)}" class="button">Start matching</a>
            </div>
        </div>
    """
    return get_email_base_template(content)
