"""
BATUTA compliance registry: report submission and certificate numbers
"""
import logging
import secrets

import requests
from flask import current_app

from app.utils.helpers import utcnow

logger = logging.getLogger(__name__)


class ComplianceRegistryError(Exception):
    """The registry refused or could not be reached"""


def report_payload(report):
    mission = report.mission
    return {
        'reference': report.intervention_reference,
        'type': report.type,
        'date': (report.date or report.created_at).isoformat(),
        'location': report.location or {},
        'workPerformed': report.work_performed,
        'certificateNumber': report.certificate_number,
        'missionNumber': mission.mission_number if mission else None,
        'technician': mission.technician.full_name if mission and mission.technician else None,
    }


def submit_report(report):
    """
    Send a compliant report to the registry and stamp batuta_sent_at

    Without BATUTA_API_URL the submission is only logged.

    Raises:
        ComplianceRegistryError: on a transport error or a non-2xx answer
    """
    url = current_app.config.get('BATUTA_API_URL')
    if not url:
        logger.info('[DEV] BATUTA submission of report %s', report.intervention_reference)
    else:
        headers = {}
        if current_app.config.get('BATUTA_API_KEY'):
            headers['Authorization'] = 'Bearer {}'.format(current_app.config['BATUTA_API_KEY'])
        try:
            response = requests.post(url, json=report_payload(report), headers=headers,
                                     timeout=current_app.config.get('BATUTA_TIMEOUT', 10))
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error('BATUTA submission failed for report %s: %s', report.intervention_reference, e)
            raise ComplianceRegistryError(str(e)) from e
        logger.info('Report %s submitted to BATUTA (status %s)',
                    report.intervention_reference, response.status_code)

    report.batuta_sent_at = utcnow()
    return report.batuta_sent_at


def generate_certificate_number(report):
    """CERT-<year>-<6 hex>; an existing number is kept"""
    if not report.certificate_number:
        report.certificate_number = 'CERT-{}-{}'.format(utcnow().year, secrets.token_hex(3).upper())
    return report.certificate_number
