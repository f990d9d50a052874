"""
HTML email templates.

Every public function returns a complete HTML document for send_email().
Styles are inlined for email-client compatibility.
"""
from html import escape as _esc

from app.utils.helpers import format_currency, format_date

ACCENT = '#3295a2'


def _wrap(company, body_html):
    return (
        '<!DOCTYPE html>'
        '<html lang="fr"><head><meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width,initial-scale=1.0">'
        '<title>{company}</title></head>'
        '<body style="margin:0;padding:0;background-color:#f3f4f6;">'
        '<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:40px 20px;">'
        '<h1 style="color:{accent};font-size:26px;text-align:center;margin:0 0 24px;">{company}</h1>'
        '<div style="background:#ffffff;border-radius:10px;padding:28px;">{body}</div>'
        '<p style="text-align:center;color:#9ca3af;font-size:12px;margin-top:24px;">'
        'Cet email a été envoyé automatiquement, merci de ne pas y répondre.</p>'
        '</div></body></html>'
    ).format(company=_esc(company), accent=ACCENT, body=body_html)


def _row(label, value):
    return (
        '<tr><td style="padding:6px 0;color:#6b7280;font-size:14px;">{}</td>'
        '<td style="padding:6px 0;color:#111827;font-size:14px;font-weight:600;text-align:right;">{}</td></tr>'
    ).format(_esc(str(label)), _esc(str(value)))


def _button(link, label):
    return (
        '<p style="text-align:center;margin:28px 0 0;">'
        '<a href="{}" style="background:{};color:#ffffff;padding:12px 24px;border-radius:6px;'
        'text-decoration:none;font-weight:600;">{}</a></p>'
    ).format(_esc(link), ACCENT, _esc(label))


def quote_sent_html(company, client_name, reference, title, total, valid_until, link):
    rows = _row('Référence', reference) + _row('Montant TTC', format_currency(total))
    if title:
        rows = _row('Objet', title) + rows
    if valid_until:
        rows += _row("Valable jusqu'au", format_date(valid_until))
    body = (
        '<p>Bonjour {},</p>'
        '<p>Votre devis est disponible. Vous pouvez le consulter et y répondre depuis votre espace client.</p>'
        '<table style="width:100%;border-collapse:collapse;">{}</table>{}'
    ).format(_esc(client_name), rows, _button(link, 'Voir le devis'))
    return _wrap(company, body)


def quote_response_html(company, client_name, reference, accepted, comments, total):
    verdict = 'accepté' if accepted else 'refusé'
    rows = _row('Client', client_name) + _row('Devis', reference) + _row('Montant TTC', format_currency(total))
    body = '<p>Le devis <strong>{}</strong> a été {} par le client.</p><table style="width:100%;">{}</table>'.format(
        _esc(reference), verdict, rows)
    if comments:
        body += '<p style="margin-top:16px;"><em>Commentaire :</em> {}</p>'.format(_esc(comments))
    return _wrap(company, body)


def quote_request_html(company, data):
    labels = [
        ('name', 'Nom'), ('email', 'Email'), ('phone', 'Téléphone'),
        ('company', 'Société'), ('address', 'Adresse'), ('serviceType', 'Prestation'),
    ]
    rows = ''.join(_row(label, data[key]) for key, label in labels if data.get(key))
    body = '<p>Une nouvelle demande de devis a été reçue depuis le site.</p><table style="width:100%;">{}</table>'.format(rows)
    if data.get('message'):
        body += '<p style="margin-top:16px;white-space:pre-line;">{}</p>'.format(_esc(data['message']))
    return _wrap(company, body)


def report_sent_html(company, client_name, reference, report_type, date, link):
    rows = _row('Référence', reference) + _row('Intervention', report_type) + _row('Date', format_date(date))
    body = (
        '<p>Bonjour {},</p>'
        "<p>Le rapport de l'intervention réalisée chez vous est disponible.</p>"
        '<table style="width:100%;">{}</table>{}'
    ).format(_esc(client_name), rows, _button(link, 'Voir le rapport'))
    return _wrap(company, body)
