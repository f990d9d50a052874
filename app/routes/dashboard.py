"""
Dashboard routes - per-role summaries for the home screens
"""
from datetime import timedelta

from flask import Blueprint, request, jsonify
from sqlalchemy import func

from app import db
from app.models import Conversation, Invoice, Mission, Payment, Quote, Report, ServiceRequest, User
from app.models.mission import MISSION_STATUSES
from app.models.quote import QUOTE_STATUSES
from app.utils import require_auth, require_role, utcnow
from app.utils.helpers import start_of_month

dashboard_bp = Blueprint('dashboard', __name__)

RECENT_REPORTS = 5


def _counts_by_status(model, statuses):
    rows = dict(db.session.query(model.status, func.count(model.id)).group_by(model.status).all())
    return {status: rows.get(status, 0) for status in statuses}


@dashboard_bp.route('/technician', methods=['GET'])
@require_auth
@require_role('technician')
def technician_dashboard():
    technician = request.current_user
    today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow = today + timedelta(days=1)

    today_missions = Mission.query.filter(
        Mission.technician_id == technician.id,
        Mission.scheduled_date >= today,
        Mission.scheduled_date < tomorrow,
        Mission.status == 'pending',
    ).order_by(Mission.scheduled_date).all()

    recent_reports = Report.query.join(Mission, Report.mission_id == Mission.id).filter(
        Mission.technician_id == technician.id).order_by(Report.created_at.desc()).limit(RECENT_REPORTS).all()

    unread_messages = sum(
        c.unread_for(technician.id) for c in Conversation.query.all() if c.has_participant(technician.id)
    )
    availability = technician.availability or {}

    return jsonify({
        'success': True,
        'data': {
            'todayMissions': [m.to_dict() for m in today_missions],
            'todayMissionsCount': len(today_missions),
            'pendingMissionsCount': Mission.query.filter_by(technician_id=technician.id, status='pending').count(),
            'completedMissionsCount': Mission.query.filter_by(technician_id=technician.id,
                                                              status='completed').count(),
            'recentReports': [r.to_dict() for r in recent_reports],
            'pendingQuotesCount': Quote.query.filter_by(technician_id=technician.id, status='sent').count(),
            'unreadMessagesCount': unread_messages,
            'availabilityStatus': availability.get('status', 'unavailable'),
            'nextDayOff': availability.get('nextDayOff'),
        }
    }), 200


@dashboard_bp.route('/admin', methods=['GET'])
@require_auth
@require_role('admin')
def admin_dashboard():
    users_by_role = dict(db.session.query(User.role, func.count(User.id)).group_by(User.role).all())
    revenue = db.session.query(func.coalesce(func.sum(Payment.amount), 0.0)).filter(
        Payment.status == 'completed', Payment.payment_date >= start_of_month()).scalar()

    return jsonify({
        'success': True,
        'data': {
            'users': {'total': sum(users_by_role.values()), 'byRole': users_by_role},
            'openRequests': ServiceRequest.query.filter(
                ServiceRequest.status.notin_(['completed', 'cancelled'])).count(),
            'quotesByStatus': _counts_by_status(Quote, QUOTE_STATUSES),
            'missionsByStatus': _counts_by_status(Mission, MISSION_STATUSES),
            'unpaidInvoices': Invoice.query.filter(Invoice.payment_status != 'paid',
                                                   Invoice.status != 'cancelled').count(),
            'revenueThisMonth': round(float(revenue or 0), 2),
        }
    }), 200
