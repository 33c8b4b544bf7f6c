"""
In-app notification center: per-employee notifications, company-wide
announcements and employee requests reviewed by HR.
"""
from datetime import datetime
from flask_babel import gettext as _
from sqlalchemy import or_
from .models import (
    db, Notification, Announcement, EmployeeRequest,
    NOTIFICATION_TYPES, ANNOUNCEMENT_PRIORITIES, REQUEST_TYPES
)
from .errors import ValidationError, NotFoundError


def push_notification(employee_id, title, message, type='info', link=None):
    """Adds a notification for one employee; the caller commits."""
    if type not in NOTIFICATION_TYPES:
        raise ValidationError(_('Unknown notification type'))
    notification = Notification(employee_id=employee_id, title=title, message=message, type=type, link=link)
    db.session.add(notification)
    return notification


def notifications_for(employee_id, unread_only=False):
    query = Notification.query.filter_by(employee_id=employee_id)
    if unread_only:
        query = query.filter_by(is_read=False)
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def unread_count(employee_id):
    return Notification.query.filter_by(employee_id=employee_id, is_read=False).count()


def _own_notification(employee_id, notification_id):
    notification = Notification.query.filter_by(id=notification_id, employee_id=employee_id).first()
    if notification is None:
        raise NotFoundError(_('Notification not found'))
    return notification


def mark_read(employee_id, notification_id):
    notification = _own_notification(employee_id, notification_id)
    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(employee_id):
    count = Notification.query.filter_by(employee_id=employee_id, is_read=False).update(
        {'is_read': True}, synchronize_session=False
    )
    db.session.commit()
    return count


def delete_notification(employee_id, notification_id):
    db.session.delete(_own_notification(employee_id, notification_id))
    db.session.commit()


# ----------------------------
# Announcements
# ----------------------------
def active_announcements(now=None):
    """Announcements without an expiry, or expiring after `now`"""
    now = now or datetime.utcnow()
    return Announcement.query.filter(
        or_(Announcement.expires_at.is_(None), Announcement.expires_at > now)
    ).order_by(Announcement.created_at.desc(), Announcement.id.desc()).all()


def create_announcement(author, title, content, priority='medium', expires_at=None):
    if priority not in ANNOUNCEMENT_PRIORITIES:
        raise ValidationError(_('Unknown priority'))
    announcement = Announcement(
        title=title,
        content=content,
        priority=priority,
        created_by=author.id,
        expires_at=expires_at
    )
    db.session.add(announcement)
    db.session.commit()
    return announcement


# ----------------------------
# Employee requests
# ----------------------------
def create_request(employee, request_type, title, description, start_date=None, end_date=None, amount=None):
    """
    Files a request for HR review and tells the employee it was received.

    Leave needs both dates, a salary advance needs a positive amount. The
    amount is only kept for advances.
    """
    if request_type not in REQUEST_TYPES:
        raise ValidationError(_('Unknown request type'))
    if request_type == 'leave':
        if start_date is None or end_date is None:
            raise ValidationError(_('Start and end dates are required for leave'))
        if end_date < start_date:
            raise ValidationError(_('The period end is before its start'))
    if request_type == 'advance':
        if amount is None or amount <= 0:
            raise ValidationError(_('An amount is required for a salary advance'))
    else:
        amount = None

    employee_request = EmployeeRequest(
        employee_id=employee.id,
        request_type=request_type,
        title=title,
        description=description,
        start_date=start_date,
        end_date=end_date,
        amount=amount,
        status='pending'
    )
    db.session.add(employee_request)
    push_notification(
        employee.id,
        'Demande créée',
        f'Votre demande "{title}" a été soumise et est en attente d\'approbation.',
        type='info'
    )
    db.session.commit()
    return employee_request


def review_request(request_id, reviewer, status, message=None):
    employee_request = db.session.get(EmployeeRequest, request_id)
    if employee_request is None:
        raise NotFoundError(_('Request not found'))
    if status not in ('approved', 'rejected'):
        raise ValidationError(_('Status must be approved or rejected'))
    if employee_request.status != 'pending':
        raise ValidationError(_('This request has already been reviewed'))

    employee_request.status = status
    employee_request.reviewed_by = reviewer.id
    employee_request.review_message = message
    employee_request.reviewed_at = datetime.utcnow()

    approved = status == 'approved'
    text = f'Votre demande "{employee_request.title}" a été {"approuvée" if approved else "refusée"}.'
    if message:
        text += f' {message}'
    push_notification(
        employee_request.employee_id,
        'Demande approuvée' if approved else 'Demande refusée',
        text,
        type='success' if approved else 'error'
    )
    db.session.commit()
    return employee_request
