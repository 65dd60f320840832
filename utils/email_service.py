import os, smtplib, logging, socket
from email.message import EmailMessage
from contextlib import closing

logger = logging.getLogger("mail")

SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
SMTP_FROM = os.getenv("SMTP_FROM") or SMTP_USER
APP_NAME = os.getenv("APP_NAME", "AbroadPass")
SMTP_DISABLE = os.getenv("SMTP_DISABLE", "0") == "1"      # never send, log instead (dev/tests)
SMTP_STRICT = os.getenv("SMTP_STRICT", "0") == "1"        # report any failure as not sent


def _smtp_config_complete() -> bool:
    return all([SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, SMTP_FROM])


def _smtp_reachable() -> bool:
    try:
        socket.gethostbyname(SMTP_HOST)
    except socket.gaierror:
        logger.error("SMTP host resolution failed: %s", SMTP_HOST)
        return False
    try:
        with closing(socket.create_connection((SMTP_HOST, SMTP_PORT), timeout=5)):
            return True
    except OSError:
        logger.error("SMTP host unreachable (port %s): %s", SMTP_PORT, SMTP_HOST)
        return False


def _deliver(to_email: str, subject: str, body: str) -> bool:
    """
    Send a plain text message. Returns True if we consider it 'sent'.
    Honors:
      - SMTP_DISABLE=1 : always succeed, log only
      - SMTP_STRICT=1  : any failure => return False
    """
    if SMTP_DISABLE:
        logger.warning("[SMTP_DISABLED] %s -> %s", subject, to_email)
        return True

    if not _smtp_config_complete():
        logger.warning("[SMTP_FALLBACK] Incomplete SMTP config; email=%s subject=%s", to_email, subject)
        return not SMTP_STRICT

    if not _smtp_reachable():
        return not SMTP_STRICT

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = SMTP_FROM
    msg["To"] = to_email
    msg.set_content(body)

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=15) as smtp:
            smtp.starttls()
            smtp.login(SMTP_USER, SMTP_PASSWORD)
            smtp.send_message(msg)
        logger.info("Sent email to %s: %s", to_email, subject)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed sending email to %s: %s", to_email, e)
        return not SMTP_STRICT


def send_otp(email: str, code: str, purpose: str = "Email Verification") -> bool:
    if SMTP_DISABLE:
        # dev convenience: the code is only ever logged when sending is off
        logger.warning("[SMTP_DISABLED] %s code for %s -> %s", purpose, email, code)
        return True
    body = (
        f"Hi,\n\nYour {APP_NAME} {purpose.lower()} code is: {code}\n"
        "It expires in a few minutes. If you did not initiate this request, please ignore this message.\n\n"
        f"Regards,\n{APP_NAME} Team"
    )
    return _deliver(email, f"{APP_NAME} {purpose} Code", body)


def send_email(to_email: str, subject: str, message: str) -> bool:
    return _deliver(to_email, subject, message)
