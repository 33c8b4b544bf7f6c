from datetime import datetime, time
from flask import Blueprint, request, jsonify
from ..models import db, Announcement
from ..auth import current_employee
from ..inbox import (
    notifications_for, unread_count, mark_read, mark_all_read, delete_notification,
    active_announcements, create_announcement
)
from ..notifications import notify_announcement
from ..permissions import requires
from .utils import get_payload, parse_str, parse_date, get_or_404

inbox_blueprint = Blueprint('inbox', __name__)


# ----------------------------
# Notifications
# ----------------------------
@inbox_blueprint.route('/notifications')
@requires('notifications')
def notifications():
    employee = current_employee()
    unread_only = request.args.get('unread') in ('1', 'true')
    rows = notifications_for(employee.id, unread_only=unread_only)
    return jsonify({
        'notifications': [n.to_dict() for n in rows],
        'unread_count': unread_count(employee.id)
    })


@inbox_blueprint.route('/notifications/<int:notification_id>/read', methods=['POST'])
@requires('notifications')
def read_notification(notification_id):
    notification = mark_read(current_employee().id, notification_id)
    return jsonify({'success': True, 'notification': notification.to_dict()})


@inbox_blueprint.route('/notifications/read-all', methods=['POST'])
@requires('notifications')
def read_all_notifications():
    count = mark_all_read(current_employee().id)
    return jsonify({'success': True, 'updated': count})


@inbox_blueprint.route('/notifications/<int:notification_id>', methods=['DELETE'])
@requires('notifications')
def remove_notification(notification_id):
    delete_notification(current_employee().id, notification_id)
    return jsonify({'success': True})


# ----------------------------
# Announcements
# ----------------------------
@inbox_blueprint.route('/announcements')
@requires('notifications')
def announcements():
    return jsonify([a.to_dict() for a in active_announcements()])


@inbox_blueprint.route('/announcements', methods=['POST'])
@requires('notifications', edit=True)
def add_announcement():
    data = get_payload()
    title = parse_str(data.get('title'), 'title')
    content = parse_str(data.get('content'), 'content')
    priority = parse_str(data.get('priority'), 'priority', required=False, default='medium')
    expires_on = parse_date(data.get('expires_at'), 'expires_at', required=False)

    author = current_employee()
    announcement = create_announcement(
        author, title, content, priority=priority,
        # Still shown during its last day
        expires_at=datetime.combine(expires_on, time.max) if expires_on else None
    )

    notify_announcement(author.full_name, title, priority)
    return jsonify({'success': True, 'announcement': announcement.to_dict()}), 201


@inbox_blueprint.route('/announcements/<int:announcement_id>', methods=['DELETE'])
@requires('notifications', edit=True)
def remove_announcement(announcement_id):
    db.session.delete(get_or_404(Announcement, announcement_id, 'Announcement'))
    db.session.commit()
    return jsonify({'success': True})
