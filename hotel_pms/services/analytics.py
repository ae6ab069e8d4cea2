"""Dashboard and analytics figures.

All functions take an optional ``branch_id``; ``None`` aggregates every
branch (superadmin view).
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pandas as pd
from sqlalchemy import func

from hotel_pms.errors import ApiError
from hotel_pms.models.user import db
from hotel_pms.models.branch import Branch
from hotel_pms.models.room import Room, ROOM_STATUSES
from hotel_pms.models.guest import Guest
from hotel_pms.models.reservation import Reservation, ReservationRoom
from hotel_pms.models.payment import Payment

PERIODS = {
    '7d': 7,
    '30d': 30,
    '90d': 90,
    '1y': 365,
}

# Reservations that count as stays for occupancy and revenue figures
STAY_STATUSES = ['confirmed', 'checked-in', 'checked-out']


def period_start(period):
    if period not in PERIODS:
        raise ApiError('INVALID_PERIOD', f'Period must be one of {", ".join(PERIODS)}', 400)
    return date.today() - timedelta(days=PERIODS[period] - 1)


def _day_bounds(day):
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def _rooms_query(branch_id):
    query = Room.query.filter(Room.is_active.is_(True))
    if branch_id:
        query = query.filter(Room.branch_id == branch_id)
    return query


def _reservations_query(branch_id):
    query = Reservation.query
    if branch_id:
        query = query.filter(Reservation.branch_id == branch_id)
    return query


def room_status_counts(branch_id=None):
    counts = {status: 0 for status in ROOM_STATUSES}
    rows = db.session.query(Room.status, func.count(Room.id)).filter(Room.is_active.is_(True))
    if branch_id:
        rows = rows.filter(Room.branch_id == branch_id)
    for status, count in rows.group_by(Room.status).all():
        counts[status] = count
    return counts


def _completed_payments_query(branch_id):
    query = db.session.query(Payment).join(Reservation).filter(Payment.status == 'completed')
    if branch_id:
        query = query.filter(Reservation.branch_id == branch_id)
    return query


def get_dashboard_metrics(branch_id=None):
    today = date.today()
    day_start, day_end = _day_bounds(today)

    counts = room_status_counts(branch_id)
    total_rooms = sum(counts.values())
    occupied = counts['occupied']

    lines = ReservationRoom.query.join(Reservation)
    if branch_id:
        lines = lines.filter(Reservation.branch_id == branch_id)
    arrivals = lines.filter(
        Reservation.status.in_(['pending', 'confirmed']),
        ReservationRoom.check_in_date >= day_start,
        ReservationRoom.check_in_date < day_end
    ).count()
    departures = lines.filter(
        Reservation.status == 'checked-in',
        ReservationRoom.check_out_date >= day_start,
        ReservationRoom.check_out_date < day_end
    ).count()

    revenue_today = _completed_payments_query(branch_id).filter(
        Payment.payment_date >= day_start,
        Payment.payment_date < day_end
    ).with_entities(func.coalesce(func.sum(Payment.amount), 0)).scalar()

    reservations = _reservations_query(branch_id)
    open_reservations = reservations.filter(Reservation.status.in_(['pending', 'confirmed', 'checked-in'])).all()
    outstanding = sum((r.balance_due for r in open_reservations), Decimal('0'))
    recent = reservations.order_by(Reservation.created_at.desc()).limit(5).all()

    return {
        'total_rooms': total_rooms,
        'occupied_rooms': occupied,
        'available_rooms': counts['available'],
        'occupancy_rate': round(occupied / total_rooms * 100, 2) if total_rooms else 0,
        'room_status': counts,
        'today_check_ins': arrivals,
        'today_check_outs': departures,
        'revenue_today': float(revenue_today or 0),
        'total_reservations': reservations.count(),
        'active_reservations': len(open_reservations),
        'outstanding_balance': float(outstanding),
        'recent_reservations': [reservation.to_dict() for reservation in recent]
    }


def get_super_admin_metrics():
    branches = Branch.query.filter_by(is_active=True).order_by(Branch.name).all()
    per_branch = []
    for branch in branches:
        metrics = get_dashboard_metrics(branch.id)
        metrics.pop('recent_reservations')
        per_branch.append({'branch': branch.to_dict(), 'metrics': metrics})

    total_rooms = sum(item['metrics']['total_rooms'] for item in per_branch)
    occupied = sum(item['metrics']['occupied_rooms'] for item in per_branch)
    return {
        'branches': per_branch,
        'totals': {
            'branch_count': len(branches),
            'total_rooms': total_rooms,
            'occupied_rooms': occupied,
            'occupancy_rate': round(occupied / total_rooms * 100, 2) if total_rooms else 0,
            'revenue_today': sum(item['metrics']['revenue_today'] for item in per_branch),
            'total_reservations': sum(item['metrics']['total_reservations'] for item in per_branch),
            'outstanding_balance': sum(item['metrics']['outstanding_balance'] for item in per_branch)
        }
    }


def revenue_frame(branch_id=None, period='30d'):
    """Completed payments in the period, one row per payment."""
    start = period_start(period)
    payments = _completed_payments_query(branch_id).filter(
        Payment.payment_date >= datetime.combine(start, datetime.min.time())
    ).all()
    frame = pd.DataFrame(
        [{
            'date': payment.payment_date.date(),
            'amount': float(payment.amount),
            'payment_method': payment.payment_method,
            'payment_type': payment.payment_type
        } for payment in payments],
        columns=['date', 'amount', 'payment_method', 'payment_type']
    )
    return frame, start


def daily_revenue(frame, start):
    days = pd.date_range(start=start, end=date.today(), freq='D')
    if frame.empty:
        series = pd.Series(0.0, index=days)
    else:
        series = frame.groupby(pd.to_datetime(frame['date']))['amount'].sum().reindex(days, fill_value=0.0)
    return pd.DataFrame({'date': days.strftime('%Y-%m-%d'), 'revenue': series.round(2).values})


def get_revenue_analytics(branch_id=None, period='30d'):
    frame, start = revenue_frame(branch_id, period)
    daily = daily_revenue(frame, start)
    total = float(round(frame['amount'].sum(), 2)) if not frame.empty else 0.0

    return {
        'period': period,
        'start_date': start.isoformat(),
        'total_revenue': total,
        'average_daily_revenue': round(total / len(daily), 2) if len(daily) else 0,
        'payment_count': int(len(frame)),
        'by_method': {k: round(float(v), 2) for k, v in frame.groupby('payment_method')['amount'].sum().items()},
        'by_type': {k: round(float(v), 2) for k, v in frame.groupby('payment_type')['amount'].sum().items()},
        'daily': daily.to_dict(orient='records')
    }


def revenue_csv(branch_id=None, period='30d'):
    frame, start = revenue_frame(branch_id, period)
    return daily_revenue(frame, start).to_csv(index=False)


def get_occupancy_analytics(branch_id=None, period='30d'):
    start = period_start(period)
    end = date.today()
    total_rooms = _rooms_query(branch_id).count()

    lines = ReservationRoom.query.join(Reservation).filter(
        Reservation.status.in_(STAY_STATUSES),
        ReservationRoom.check_in_date < datetime.combine(end + timedelta(days=1), datetime.min.time()),
        ReservationRoom.check_out_date > datetime.combine(start, datetime.min.time())
    )
    if branch_id:
        lines = lines.filter(Reservation.branch_id == branch_id)
    stays = [(line.check_in_date.date(), line.check_out_date.date()) for line in lines.all()]

    daily = []
    for day in pd.date_range(start=start, end=end, freq='D'):
        night = day.date()
        occupied = sum(1 for check_in, check_out in stays if check_in <= night < check_out)
        daily.append({
            'date': night.isoformat(),
            'occupied_rooms': occupied,
            'occupancy_rate': round(occupied / total_rooms * 100, 2) if total_rooms else 0
        })

    rates = [entry['occupancy_rate'] for entry in daily]
    return {
        'period': period,
        'total_rooms': total_rooms,
        'average_occupancy_rate': round(sum(rates) / len(rates), 2) if rates else 0,
        'peak_occupancy_rate': max(rates) if rates else 0,
        'current_status': room_status_counts(branch_id),
        'daily': daily
    }


def get_guest_analytics(branch_id=None):
    guests = Guest.query.filter(Guest.is_active.is_(True))
    if branch_id:
        guests = guests.filter(Guest.branch_id == branch_id)
    guests = guests.all()

    month_start = datetime.combine(date.today().replace(day=1), datetime.min.time())
    frame = pd.DataFrame(
        [{
            'nationality': guest.nationality or 'Unknown',
            'id_type': guest.id_type or 'unspecified',
            'reservation_count': guest.reservation_count or 0,
            'created_at': guest.created_at
        } for guest in guests],
        columns=['nationality', 'id_type', 'reservation_count', 'created_at']
    )

    if frame.empty:
        return {
            'total_guests': 0,
            'new_this_month': 0,
            'repeat_guests': 0,
            'repeat_rate': 0,
            'top_nationalities': [],
            'id_types': {}
        }

    repeat = int((frame['reservation_count'] > 1).sum())
    top = frame['nationality'].value_counts().head(5)
    return {
        'total_guests': int(len(frame)),
        'new_this_month': int((frame['created_at'] >= month_start).sum()),
        'repeat_guests': repeat,
        'repeat_rate': round(repeat / len(frame) * 100, 2),
        'top_nationalities': [{'nationality': k, 'count': int(v)} for k, v in top.items()],
        'id_types': {k: int(v) for k, v in frame['id_type'].value_counts().items()}
    }


def get_room_performance_analytics(branch_id=None):
    rooms = _rooms_query(branch_id).order_by(Room.number).all()
    lines = ReservationRoom.query.join(Reservation).filter(Reservation.status.in_(STAY_STATUSES))
    if branch_id:
        lines = lines.filter(Reservation.branch_id == branch_id)

    frame = pd.DataFrame(
        [{
            'room_id': line.room_id,
            'nights': (line.check_out_date.date() - line.check_in_date.date()).days,
            'revenue': float(line.total_amount)
        } for line in lines.all()],
        columns=['room_id', 'nights', 'revenue']
    )
    stats = frame.groupby('room_id').agg(
        bookings=('revenue', 'size'), nights=('nights', 'sum'), revenue=('revenue', 'sum')
    )

    per_room = []
    per_type = {}
    for room in rooms:
        bookings = int(stats.at[room.id, 'bookings']) if room.id in stats.index else 0
        nights = int(stats.at[room.id, 'nights']) if room.id in stats.index else 0
        revenue = round(float(stats.at[room.id, 'revenue']), 2) if room.id in stats.index else 0.0
        type_name = room.room_type.name if room.room_type else 'Unknown'
        per_room.append({
            'room_id': room.id,
            'room_number': room.number,
            'room_type': type_name,
            'status': room.status,
            'bookings': bookings,
            'nights': nights,
            'revenue': revenue
        })
        totals = per_type.setdefault(type_name, {'room_type': type_name, 'rooms': 0, 'bookings': 0,
                                                 'nights': 0, 'revenue': 0.0})
        totals['rooms'] += 1
        totals['bookings'] += bookings
        totals['nights'] += nights
        totals['revenue'] = round(totals['revenue'] + revenue, 2)

    return {
        'rooms': sorted(per_room, key=lambda item: item['revenue'], reverse=True),
        'room_types': sorted(per_type.values(), key=lambda item: item['revenue'], reverse=True)
    }


def get_operational_analytics(branch_id=None):
    today = date.today()
    day_start, day_end = _day_bounds(today)

    lines = ReservationRoom.query.join(Reservation)
    reservations = _reservations_query(branch_id)
    if branch_id:
        lines = lines.filter(Reservation.branch_id == branch_id)

    arrivals = lines.filter(
        Reservation.status.in_(['pending', 'confirmed']),
        ReservationRoom.check_in_date >= day_start,
        ReservationRoom.check_in_date < day_end
    ).count()
    departures = lines.filter(
        Reservation.status == 'checked-in',
        ReservationRoom.check_out_date < day_end
    ).count()
    in_house = lines.filter(Reservation.status == 'checked-in').count()

    stays = lines.filter(Reservation.status.in_(STAY_STATUSES)).all()
    lengths = [(line.check_out_date - line.check_in_date).total_seconds() / 86400 for line in stays]

    counts = room_status_counts(branch_id)
    return {
        'arrivals_today': arrivals,
        'departures_due': departures,
        'in_house': in_house,
        'pending_reservations': reservations.filter(Reservation.status == 'pending').count(),
        'no_shows': reservations.filter(Reservation.status == 'no-show').count(),
        'rooms_needing_attention': {
            'maintenance': counts['maintenance'],
            'out-of-order': counts['out-of-order'],
            'housekeeping': counts['housekeeping']
        },
        'average_length_of_stay': round(sum(lengths) / len(lengths), 2) if lengths else 0
    }
