import logging
from typing import List, Optional, Union
import boto3
from botocore.exceptions import BotoCoreError, ClientError
from app.config import settings
from app.templates.invitation_template import get_invitation_email_body, get_invitation_subject
from app.templates.onboarding_template import get_onboarding_email_body, get_onboarding_subject
from app.templates.password_reset_template import get_password_reset_email_body, get_password_reset_subject

logger = logging.getLogger(__name__)


def get_ses_client():
    """Get AWS SES client"""
    return boto3.client(
        'ses',
        region_name=settings.aws_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key
    )


async def send_email(
    to_email: Union[str, List[str]],
    subject: str,
    html_body: str,
    text_body: Optional[str] = None
) -> bool:
    """Send email via AWS SES. Returns False when delivery failed."""
    recipients = [to_email] if isinstance(to_email, str) else list(to_email)

    if not settings.aws_ses_from_email:
        logger.warning("AWS_SES_FROM_EMAIL not configured. Email not sent.")
        return False

    try:
        client = get_ses_client()

        message = {
            'Subject': {'Data': subject, 'Charset': 'UTF-8'},
            'Body': {
                'Html': {'Data': html_body, 'Charset': 'UTF-8'}
            }
        }

        if text_body:
            message['Body']['Text'] = {'Data': text_body, 'Charset': 'UTF-8'}

        response = client.send_email(
            Source=f"{settings.aws_ses_from_name} <{settings.aws_ses_from_email}>",
            Destination={'ToAddresses': recipients},
            Message=message
        )

        logger.info(f"Email sent to {', '.join(recipients)}: {response['MessageId']}")
        return True

    except ClientError as e:
        logger.error(f"Failed to send email to {', '.join(recipients)}: {e}")
        return False
    except BotoCoreError as e:
        logger.error(f"Error sending email: {e}")
        return False


async def send_invitation_email(
    to_email: str,
    inviter_name: str,
    organization_name: str,
    role: str,
    accept_url: str
) -> bool:
    """Send a team invitation email"""
    html_body = get_invitation_email_body(
        inviter_name=inviter_name,
        organization_name=organization_name,
        role=role,
        accept_url=accept_url
    )
    return await send_email(
        to_email=to_email,
        subject=get_invitation_subject(organization_name),
        html_body=html_body
    )


async def send_onboarding_email(to_email: str, name: str, onboarding_url: str) -> bool:
    """Send the waitlist approval email with the onboarding link"""
    return await send_email(
        to_email=to_email,
        subject=get_onboarding_subject(),
        html_body=get_onboarding_email_body(name, onboarding_url)
    )


async def send_password_reset_email(to_email: str, name: str, reset_url: str) -> bool:
    """Send a password reset link"""
    return await send_email(
        to_email=to_email,
        subject=get_password_reset_subject(),
        html_body=get_password_reset_email_body(name, reset_url)
    )
