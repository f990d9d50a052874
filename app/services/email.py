"""
Outbound email.

Resend is preferred, SendGrid is the fallback; with neither configured the
message is logged. No function in this module raises: an email failure
never fails the request that triggered it. Sending happens on a background
thread so request handlers are not blocked by provider I/O.
"""
import logging
import threading

from flask import current_app

logger = logging.getLogger(__name__)


def _provider_settings():
    cfg = current_app.config
    return {
        'resend_api_key': cfg.get('RESEND_API_KEY'),
        'sendgrid_api_key': cfg.get('SENDGRID_API_KEY'),
        'from_email': cfg.get('EMAIL_FROM'),
        'from_name': cfg.get('EMAIL_FROM_NAME'),
    }


def _send_email_sync(settings, to_email, subject, html_content):
    """Send through the configured provider. Returns a provider id/status or None."""
    try:
        if settings['resend_api_key']:
            return _send_email_resend(settings, to_email, subject, html_content)

        if settings['sendgrid_api_key']:
            return _send_email_sendgrid(settings, to_email, subject, html_content)

        logger.info('[DEV] Email to %s: %s', to_email, subject)
        return None
    except Exception:
        logger.exception('Failed to send email to %s', to_email)
        return None


def _send_email_resend(settings, to_email, subject, html_content):
    try:
        import resend
        resend.api_key = settings['resend_api_key']

        response = resend.Emails.send({
            'from': '{} <{}>'.format(settings['from_name'], settings['from_email']),
            'to': [to_email],
            'subject': subject,
            'html': html_content,
        })
        logger.info('Email sent via Resend to %s (id: %s)', to_email, response.get('id'))
        return response.get('id')
    except Exception:
        logger.exception('Resend email failed for %s', to_email)
        return None


def _send_email_sendgrid(settings, to_email, subject, html_content):
    try:
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail

        message = Mail(
            from_email=(settings['from_email'], settings['from_name']),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        response = SendGridAPIClient(settings['sendgrid_api_key']).send(message)
        logger.info('Email sent via SendGrid to %s (status: %s)', to_email, response.status_code)
        return response.status_code
    except Exception:
        logger.exception('SendGrid email failed for %s', to_email)
        return None


def send_email(to_email, subject, html_content):
    """Queue an email on a background thread. Returns True when queued. Never raises."""
    try:
        if not to_email:
            return False
        if current_app.config.get('MAIL_SUPPRESS_SEND'):
            logger.info('[SUPPRESSED] Email to %s: %s', to_email, subject)
            return True

        thread = threading.Thread(
            target=_send_email_sync,
            args=(_provider_settings(), to_email, subject, html_content),
            daemon=True,
        )
        thread.start()
        return True
    except Exception:
        logger.exception('Failed to queue email to %s', to_email)
        return False


# ---------------------------------------------------------------------------
# Workflow emails
# ---------------------------------------------------------------------------

def send_quote_email(quote, client):
    """Quote available for review. Never raises."""
    try:
        from .email_templates import quote_sent_html
        subject = 'Votre devis {}'.format(quote.reference)
        return send_email(client.email, subject, quote_sent_html(
            company=current_app.config['COMPANY_NAME'],
            client_name=client.full_name,
            reference=quote.reference,
            title=quote.title,
            total=quote.total,
            valid_until=quote.valid_until,
            link='{}/quotes/{}'.format(current_app.config['FRONTEND_URL'], quote.id),
        ))
    except Exception:
        logger.exception('Failed in send_quote_email for quote %s', quote.id)
        return False


def send_quote_response_email(quote, client, recipients):
    """Tell staff a client answered a quote. Never raises."""
    try:
        from .email_templates import quote_response_html
        accepted = quote.status == 'accepted'
        subject = 'Devis {} {}'.format(quote.reference, 'accepté' if accepted else 'refusé')
        html = quote_response_html(
            company=current_app.config['COMPANY_NAME'],
            client_name=client.full_name,
            reference=quote.reference,
            accepted=accepted,
            comments=(quote.client_response or {}).get('comments'),
            total=quote.total,
        )
        return all([send_email(r.email, subject, html) for r in recipients])
    except Exception:
        logger.exception('Failed in send_quote_response_email for quote %s', quote.id)
        return False


def send_quote_request_email(data):
    """Forward a public quote request to the configured admin addresses. Never raises."""
    try:
        from .email_templates import quote_request_html
        html = quote_request_html(company=current_app.config['COMPANY_NAME'], data=data)
        subject = 'Nouvelle demande de devis - {}'.format(data.get('name', ''))
        return all([send_email(address, subject, html) for address in current_app.config['ADMIN_EMAILS']])
    except Exception:
        logger.exception('Failed in send_quote_request_email')
        return False


def send_report_email(report, client):
    """Intervention report available. Never raises."""
    try:
        from .email_templates import report_sent_html
        subject = "Rapport d'intervention {}".format(report.intervention_reference)
        return send_email(client.email, subject, report_sent_html(
            company=current_app.config['COMPANY_NAME'],
            client_name=client.full_name,
            reference=report.intervention_reference,
            report_type=report.type,
            date=report.date or report.created_at,
            link='{}/reports/{}'.format(current_app.config['FRONTEND_URL'], report.id),
        ))
    except Exception:
        logger.exception('Failed in send_report_email for report %s', report.id)
        return False
