from datetime import datetime
from decimal import Decimal
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import XPos, YPos

from hotel_pms.models.hotel_settings import HotelSettings
from hotel_pms.services.reservations import calculate_nights

CENT = Decimal('0.01')

FONT_DIR = Path(__file__).resolve().parent.parent / 'fonts'
FONT_FAMILY = 'DejaVuSans'


def _money(value):
    return Decimal(value or 0).quantize(CENT)


def build_invoice(reservation, additional_charges=0, discount=0, tax=0):
    settings = HotelSettings.for_branch(reservation.branch_id)
    currency = settings.currency if settings else 'NPR'

    lines = []
    for line in reservation.reservation_rooms:
        lines.append({
            'room_number': line.room.number if line.room else str(line.room_id),
            'room_type': line.room.room_type.name if line.room and line.room.room_type else None,
            'check_in_date': line.check_in_date.isoformat(),
            'check_out_date': line.check_out_date.isoformat(),
            'nights': calculate_nights(line.check_in_date, line.check_out_date),
            'rate_per_night': float(_money(line.rate_per_night)),
            'amount': float(_money(line.total_amount))
        })

    subtotal = _money(reservation.total_amount)
    additional_charges = _money(additional_charges)
    discount = _money(discount)
    tax = _money(tax)
    grand_total = max(Decimal('0'), subtotal + additional_charges + tax - discount)
    paid = _money(reservation.paid_amount)
    balance = max(Decimal('0'), grand_total - paid)

    guest = reservation.guest
    return {
        'invoice_number': f'INV-{reservation.confirmation_number}',
        'issued_at': datetime.utcnow().isoformat(),
        'hotel': settings.to_dict() if settings else {},
        'currency': currency,
        'reservation': {
            'id': reservation.id,
            'confirmation_number': reservation.confirmation_number,
            'status': reservation.status
        },
        'guest': {
            'name': guest.full_name,
            'phone': guest.phone,
            'email': guest.email,
            'address': guest.address
        },
        'lines': lines,
        'payments': [payment.to_dict() for payment in reservation.payments],
        'subtotal': float(subtotal),
        'additional_charges': float(additional_charges),
        'discount': float(discount),
        'tax': float(tax),
        'grand_total': float(grand_total),
        'paid_amount': float(paid),
        'balance_due': float(balance),
        'is_paid': balance <= 0
    }


def _new_document(fallback_fonts=()):
    """Unicode-capable document; the built-in core fonts only cover Latin-1."""
    pdf = FPDF()
    pdf.add_font(FONT_FAMILY, '', FONT_DIR / 'DejaVuSans.ttf')
    pdf.add_font(FONT_FAMILY, 'B', FONT_DIR / 'DejaVuSans-Bold.ttf')

    # Extra TTFs for scripts DejaVu lacks, e.g. Devanagari
    fallback_families = []
    for index, path in enumerate(fallback_fonts):
        family = f'Fallback{index}'
        pdf.add_font(family, '', path)
        fallback_families.append(family)
    if fallback_families:
        pdf.set_fallback_fonts(fallback_families, exact_match=False)
    return pdf


def render_invoice_pdf(invoice, fallback_fonts=()):
    hotel = invoice['hotel']
    currency = invoice['currency']

    pdf = _new_document(fallback_fonts)
    pdf.add_page()

    # Header
    pdf.set_font(FONT_FAMILY, 'B', 16)
    pdf.cell(0, 10, text=hotel.get('hotel_name') or 'Hotel Invoice', align='C',
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(FONT_FAMILY, size=9)
    for detail in (hotel.get('address'), hotel.get('phone'), hotel.get('email')):
        if detail:
            pdf.cell(0, 5, text=detail, align='C', new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    if hotel.get('tax_number'):
        pdf.cell(0, 5, text=f'Tax No: {hotel["tax_number"]}', align='C',
                 new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(6)

    pdf.set_font(FONT_FAMILY, 'B', 11)
    pdf.cell(0, 7, text=f'Invoice {invoice["invoice_number"]}', new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(FONT_FAMILY, size=10)
    pdf.cell(0, 6, text=f'Guest: {invoice["guest"]["name"]}', new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.cell(0, 6, text=f'Confirmation: {invoice["reservation"]["confirmation_number"]}',
             new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    # Room lines
    pdf.set_font(FONT_FAMILY, 'B', 10)
    pdf.cell(25, 8, text='Room', border=1)
    pdf.cell(40, 8, text='Check-in', border=1)
    pdf.cell(40, 8, text='Check-out', border=1)
    pdf.cell(20, 8, text='Nights', border=1)
    pdf.cell(30, 8, text='Rate', border=1)
    pdf.cell(35, 8, text='Amount', border=1, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    pdf.set_font(FONT_FAMILY, size=10)
    for line in invoice['lines']:
        pdf.cell(25, 8, text=line['room_number'], border=1)
        pdf.cell(40, 8, text=line['check_in_date'][:16].replace('T', ' '), border=1)
        pdf.cell(40, 8, text=line['check_out_date'][:16].replace('T', ' '), border=1)
        pdf.cell(20, 8, text=str(line['nights']), border=1)
        pdf.cell(30, 8, text=f'{line["rate_per_night"]:.2f}', border=1)
        pdf.cell(35, 8, text=f'{line["amount"]:.2f}', border=1, new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    # Totals
    totals = [
        ('Subtotal', invoice['subtotal']),
        ('Additional charges', invoice['additional_charges']),
        ('Discount', -invoice['discount']),
        ('Tax', invoice['tax']),
        ('Total', invoice['grand_total']),
        ('Paid', invoice['paid_amount']),
        ('Balance due', invoice['balance_due'])
    ]
    for label, amount in totals:
        pdf.set_font(FONT_FAMILY, 'B' if label in ('Total', 'Balance due') else '', 10)
        pdf.cell(155, 7, text=label, align='R')
        pdf.cell(35, 7, text=f'{currency} {amount:.2f}', align='R', new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    if hotel.get('billing_footer'):
        pdf.ln(8)
        pdf.set_font(FONT_FAMILY, size=9)
        pdf.multi_cell(0, 5, text=hotel['billing_footer'])

    return bytes(pdf.output())
