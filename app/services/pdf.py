"""
PDF documents for quotes, invoices and intervention reports (reportlab platypus).

Builders read persisted rows only and return the document as bytes.
"""
import io
import logging
import os

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.utils.helpers import format_currency, format_date
from .uploads import url_to_path

logger = logging.getLogger(__name__)

ACCENT = colors.HexColor('#3295a2')
PHOTO_WIDTH = 8 * cm


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle('DocTitle', parent=styles['Title'], textColor=ACCENT, fontSize=20, spaceAfter=6))
    styles.add(ParagraphStyle('Section', parent=styles['Heading3'], textColor=ACCENT, spaceBefore=12, spaceAfter=4))
    styles.add(ParagraphStyle('Small', parent=styles['Normal'], fontSize=9, textColor=colors.HexColor('#4b5563')))
    return styles


def _text(value):
    """Paragraph-safe text: reportlab parses a small XML subset"""
    if value is None:
        return ''
    return (str(value).replace('&', '&amp;').replace('<', '&lt;').replace('>', '&gt;')
            .replace('\n', '<br/>'))


def _party_block(title, user, styles):
    if user is None:
        return [Paragraph(title, styles['Section']), Paragraph('-', styles['Normal'])]
    lines = [user.full_name]
    if user.company:
        lines.append(user.company)
    address = user.address or {}
    street = address.get('street')
    city = ' '.join(filter(None, [address.get('postalCode'), address.get('city')]))
    lines.extend(filter(None, [street, city, user.email, user.phone]))
    return [Paragraph(title, styles['Section']), Paragraph('<br/>'.join(_text(l) for l in lines), styles['Normal'])]


def _header(styles, title, reference, date_label, date_value):
    company = current_app.config['COMPANY_NAME']
    return [
        Paragraph(_text(company), styles['Small']),
        Paragraph(_text(title), styles['DocTitle']),
        Paragraph('<b>{}</b> &nbsp; {} : {}'.format(_text(reference), _text(date_label), format_date(date_value)),
                  styles['Normal']),
        Spacer(1, 0.4 * cm),
    ]


def _items_table(rows, header):
    table = Table([header] + rows, colWidths=[8.5 * cm, 2 * cm, 3 * cm, 3 * cm], repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), ACCENT),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('ALIGN', (1, 0), (-1, -1), 'RIGHT'),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.HexColor('#d1d5db')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f3f4f6')]),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    return table


def _totals_table(rows):
    table = Table(rows, colWidths=[13.5 * cm, 3 * cm])
    table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('LINEABOVE', (0, -1), (-1, -1), 0.75, ACCENT),
    ]))
    return table


def _render(story, title):
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=title,
                            leftMargin=2 * cm, rightMargin=2 * cm, topMargin=1.5 * cm, bottomMargin=1.5 * cm)
    doc.build(story)
    return buffer.getvalue()


def build_quote_pdf(quote):
    styles = _styles()
    story = _header(styles, 'DEVIS', quote.reference, 'Date', quote.created_at)
    if quote.title:
        story.append(Paragraph(_text(quote.title), styles['Heading2']))
    story.extend(_party_block('Client', quote.client, styles))
    if quote.description:
        story.append(Paragraph('Description', styles['Section']))
        story.append(Paragraph(_text(quote.description), styles['Normal']))

    rows = []
    for item in quote.items or []:
        quantity = float(item.get('quantity') or 0)
        unit_price = float(item.get('unitPrice') or 0)
        rows.append([
            Paragraph(_text(item.get('description')), styles['Normal']),
            '{:g}'.format(quantity),
            format_currency(unit_price),
            format_currency(quantity * unit_price),
        ])
    story.append(Spacer(1, 0.4 * cm))
    story.append(_items_table(rows, ['Désignation', 'Qté', 'P.U. HT', 'Total HT']))
    story.append(Spacer(1, 0.3 * cm))
    story.append(_totals_table([
        ['Sous-total HT', format_currency(quote.subtotal)],
        ['TVA ({:g} %)'.format(quote.tax_rate), format_currency(quote.tax_amount)],
        ['Total TTC', format_currency(quote.total)],
    ]))

    if quote.valid_until:
        story.append(Spacer(1, 0.3 * cm))
        story.append(Paragraph("Devis valable jusqu'au {}".format(format_date(quote.valid_until)), styles['Small']))
    if quote.notes:
        story.append(Paragraph('Notes', styles['Section']))
        story.append(Paragraph(_text(quote.notes), styles['Normal']))
    if quote.terms:
        story.append(Paragraph('Conditions', styles['Section']))
        story.append(Paragraph(_text(quote.terms), styles['Small']))
    return _render(story, 'Devis {}'.format(quote.reference))


def build_invoice_pdf(invoice):
    styles = _styles()
    story = _header(styles, 'FACTURE', invoice.invoice_number, 'Émise le', invoice.issue_date)
    story.extend(_party_block('Facturé à', invoice.client, styles))
    if invoice.company:
        story.append(Paragraph('Société : {}'.format(_text(invoice.company.name)), styles['Normal']))

    rows = [[
        Paragraph(_text(item.get('description')), styles['Normal']),
        '{:g}'.format(float(item.get('quantity') or 0)),
        format_currency(float(item.get('unitPrice') or 0)),
        format_currency(float(item.get('total') or 0)),
    ] for item in invoice.items or []]
    story.append(Spacer(1, 0.4 * cm))
    story.append(_items_table(rows, ['Désignation', 'Qté', 'P.U.', 'Total']))
    story.append(Spacer(1, 0.3 * cm))
    story.append(_totals_table([['Montant total', format_currency(invoice.total_amount)]]))
    story.append(Spacer(1, 0.4 * cm))
    story.append(Paragraph("Date d'échéance : {}".format(format_date(invoice.due_date)), styles['Normal']))
    story.append(Paragraph('Statut : {} / {}'.format(invoice.status, invoice.payment_status), styles['Small']))
    if invoice.notes:
        story.append(Paragraph('Notes', styles['Section']))
        story.append(Paragraph(_text(invoice.notes), styles['Normal']))
    return _render(story, 'Facture {}'.format(invoice.invoice_number))


def _photo_flowable(photo):
    """Scaled Image for a stored photo, or None when the file is missing or unreadable"""
    path = url_to_path(photo.get('url'))
    if not path or not os.path.isfile(path):
        logger.warning('Report photo not found on disk, skipped: %s', photo.get('url'))
        return None
    try:
        width, height = ImageReader(path).getSize()
    except Exception:
        logger.warning('Report photo unreadable, skipped: %s', photo.get('url'), exc_info=True)
        return None
    return Image(path, width=PHOTO_WIDTH, height=PHOTO_WIDTH * height / float(width))


def build_report_pdf(report, equipment_names=None, product_names=None):
    styles = _styles()
    mission = report.mission
    story = _header(styles, "RAPPORT D'INTERVENTION", report.intervention_reference, 'Date',
                    report.date or report.created_at)

    details = [
        ['Type', report.type],
        ['Mission', mission.mission_number if mission else '-'],
        ['Horaires', '{} - {}'.format(report.start_time or '--:--', report.end_time or '--:--')],
        ['Technicien', mission.technician.full_name if mission and mission.technician else '-'],
        ['Conformité BATUTA', 'Oui' if report.batutal_compliant else 'Non'],
    ]
    if report.certificate_number:
        details.append(['Certificat', report.certificate_number])
    location = report.location or {}
    address = ', '.join(filter(None, [location.get('address'), location.get('postalCode'), location.get('city')]))
    if address:
        details.append(['Lieu', address])
    table = Table(details, colWidths=[5 * cm, 11.5 * cm])
    table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.25, colors.HexColor('#d1d5db')),
    ]))
    story.append(table)

    if mission:
        story.extend(_party_block('Client', mission.client, styles))

    sections = [
        ('Équipement', report.equipment),
        ('Travaux réalisés', report.work_performed),
        ('Recommandations', report.recommendations),
        ('Notes', report.notes),
    ]
    if equipment_names:
        sections.insert(1, ('Kits installés', ', '.join(equipment_names)))
    if product_names:
        sections.insert(2, ('Produits utilisés', ', '.join(product_names)))
    for title, body in sections:
        if body:
            story.append(Paragraph(title, styles['Section']))
            story.append(Paragraph(_text(body), styles['Normal']))

    anomalies = [a for a in report.anomalies or [] if a]
    if anomalies:
        story.append(Paragraph('Anomalies', styles['Section']))
        for anomaly in anomalies:
            text = anomaly.get('description') if isinstance(anomaly, dict) else anomaly
            story.append(Paragraph('- {}'.format(_text(text)), styles['Normal']))

    photos = report.photos or []
    if photos:
        story.append(Paragraph('Photos', styles['Section']))
        for photo in photos:
            image = _photo_flowable(photo)
            if image is None:
                continue
            story.append(image)
            if photo.get('description'):
                story.append(Paragraph(_text(photo['description']), styles['Small']))
            story.append(Spacer(1, 0.3 * cm))

    return _render(story, 'Rapport {}'.format(report.intervention_reference))
