"""
Grade based capabilities.

A capability is (module, view|edit). The ModulePermission table is the source
of truth; DEFAULT_PERMISSIONS seeds it and answers for modules that have no
row yet.
"""
from functools import wraps
from flask_babel import gettext as _
from .models import db, ModulePermission, GRADES
from .errors import AuthenticationError, PermissionDeniedError

ADMINS = ('PDG', 'CoPDG')
MANAGERS = ('PDG', 'CoPDG', 'Manager')
EVERYONE = tuple(GRADES)

# module -> (grades that can view, grades that can edit)
DEFAULT_PERMISSIONS = {
    'dashboard': (EVERYONE, ()),
    'pos': (EVERYONE, EVERYONE),
    'partner_sales': (EVERYONE, EVERYONE),
    'stocks': (EVERYONE, EVERYONE),
    'production': (EVERYONE, EVERYONE),
    'timesheet': (EVERYONE, EVERYONE),
    'expenses': (EVERYONE, MANAGERS),
    'menus': (ADMINS, ADMINS),
    'notifications': (EVERYONE, ADMINS),
    'requests': (EVERYONE, EVERYONE),
    'hr': (MANAGERS, MANAGERS),
    'settings': (ADMINS, ADMINS),
}

MODULES = list(DEFAULT_PERMISSIONS)


def default_capability(grade, module, edit=False):
    viewers, editors = DEFAULT_PERMISSIONS.get(module, ((), ()))
    return grade in (editors if edit else viewers)


def seed_module_permissions():
    """Create the missing (module, grade) rows from the defaults."""
    existing = {(p.module_name, p.grade) for p in ModulePermission.query.all()}
    for module in MODULES:
        for grade in GRADES:
            if (module, grade) in existing:
                continue
            db.session.add(ModulePermission(
                module_name=module,
                grade=grade,
                can_view=default_capability(grade, module),
                can_edit=default_capability(grade, module, edit=True)
            ))
    db.session.commit()


def has_capability(grade, module, edit=False):
    permission = ModulePermission.query.filter_by(module_name=module, grade=grade).first()
    if permission is None:
        return default_capability(grade, module, edit)
    # Edit implies view
    if edit:
        return permission.can_edit
    return permission.can_view or permission.can_edit


def requires(module, edit=False):
    """Route decorator: the logged-in employee needs the capability once per request."""
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            from .auth import current_session
            session = current_session()
            if not session.is_authenticated:
                raise AuthenticationError(_('Authentication required'))
            if not has_capability(session.employee.grade, module, edit):
                raise PermissionDeniedError(_('Access denied'))
            return view(*args, **kwargs)
        return wrapped
    return decorator
