"""AWS SES adapter for sending billing emails."""

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from nestledger.config import env
from nestledger.logger import logger


class SESEmailService:
  """Service for sending transactional emails via Amazon SES."""

  def __init__(self):
    """Initialize SES client."""
    self.ses_client = boto3.client("ses", region_name=env.AWS_REGION)
    self.from_address = env.EMAIL_FROM_ADDRESS
    self.from_name = env.EMAIL_FROM_NAME

    if not self.from_address:
      logger.warning("EMAIL_FROM_ADDRESS not configured - emails will not be sent")

  def send(
    self,
    to_email: str,
    subject: str,
    html_body: str,
    text_body: str | None = None,
    email_type: str = "billing",
  ) -> bool:
    """
    Send an email via Amazon SES.

    Args:
        to_email: Recipient email address
        subject: Subject line
        html_body: Rendered HTML body
        text_body: Plain text alternative
        email_type: Tag used to group messages in SES metrics

    Returns:
        True if email was sent successfully, False otherwise
    """
    if not env.EMAIL_ENABLED:
      logger.info(f"Email disabled, skipping {email_type} email to {to_email}")
      return False

    if not self.from_address:
      logger.warning(
        f"Cannot send {email_type} email - EMAIL_FROM_ADDRESS not configured"
      )
      return False

    body = {"Html": {"Data": html_body, "Charset": "UTF-8"}}
    if text_body:
      body["Text"] = {"Data": text_body, "Charset": "UTF-8"}

    try:
      response = self.ses_client.send_email(
        Source=f"{self.from_name} <{self.from_address}>",
        Destination={"ToAddresses": [to_email]},
        Message={
          "Subject": {"Data": subject, "Charset": "UTF-8"},
          "Body": body,
        },
        Tags=[
          {"Name": "EmailType", "Value": email_type},
          {"Name": "Environment", "Value": env.ENVIRONMENT},
        ],
      )

      logger.info(
        f"Sent {email_type} email to {to_email}. MessageId: {response['MessageId']}"
      )
      return True

    except ClientError as e:
      error_code = e.response["Error"]["Code"]
      error_message = e.response["Error"]["Message"]

      if error_code == "MessageRejected":
        logger.error(f"SES rejected email to {to_email}: {error_message}")
      elif error_code == "MailFromDomainNotVerified":
        logger.error(f"SES sender domain not verified: {self.from_address}")
      else:
        logger.error(
          f"AWS SES error sending {email_type} email to {to_email}: {error_code} - {error_message}"
        )
      return False

    except BotoCoreError as e:
      logger.error(f"SES transport error sending {email_type} email to {to_email}: {e!s}")
      return False
