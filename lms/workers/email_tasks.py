"""
Email background tasks.

Invite and password setup emails.
"""

from lms.workers.celery_app import celery_app


def render_password_setup_email(
    setup_url: str,
    full_name: str | None = None,
    invite: bool = False,
    expires_in_minutes: int = 60,
) -> tuple[str, str]:
    """Return (subject, html) for an invite or password setup email."""
    greeting = f"Hi {full_name}," if full_name else "Hi,"
    if invite:
        subject = "You've been invited to the learning platform"
        intro = "An administrator has invited you. Set a password to activate your account."
        button = "Set up your account"
    else:
        subject = "Set your password"
        intro = "An administrator has requested a password setup link for your account."
        button = "Set Password"

    html = f"""
        <p>{greeting}</p>
        <p>{intro}</p>
        <p>
            <a href="{setup_url}"
               style="background:#2563eb;color:#fff;padding:12px 24px;
                      border-radius:6px;text-decoration:none;display:inline-block;">
                {button}
            </a>
        </p>
        <p>This link expires in {expires_in_minutes} minutes.</p>
        <p>If you did not expect this email, you can safely ignore it.</p>
    """
    return subject, html


@celery_app.task(name="lms.workers.email_tasks.send_password_setup_email", bind=True, max_retries=3)
def send_password_setup_email(
    self,  # type: ignore[no-untyped-def]
    to_email: str,
    setup_url: str,
    full_name: str | None = None,
    invite: bool = False,
) -> dict[str, str]:
    """
    Send an invite or password setup email via Resend.

    Args:
        to_email: Recipient email address.
        setup_url: Link carrying the one-time setup token.
        full_name: Recipient display name, if known.
        invite: True for the invite wording, False for a plain setup link.

    Returns:
        Dict with status and message_id.
    """
    try:
        import resend

        from lms.core.config import settings

        resend.api_key = settings.RESEND_API_KEY

        subject, html = render_password_setup_email(
            setup_url,
            full_name=full_name,
            invite=invite,
            expires_in_minutes=settings.PASSWORD_SETUP_TOKEN_TTL_SECONDS // 60,
        )
        params: resend.Emails.SendParams = {
            "from": settings.EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html,
        }

        response = resend.Emails.send(params)
        return {"status": "sent", "message_id": response["id"]}

    except Exception as exc:
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))
