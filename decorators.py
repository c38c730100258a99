from functools import wraps
from flask import jsonify
from flask_login import current_user
from extensions import login_manager
from permissions import resolve_context


def password_setup_required(f):
    """
    Bloqueia a rota até o usuário convidado definir a senha.
    Deve ser aplicado depois de @login_required.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        if not current_user.password_set:
            return jsonify({
                'success': False,
                'code': 'password_setup_required',
                'message': 'Defina sua senha para continuar.'
            }), 403
        return f(*args, **kwargs)
    return decorated_function


def role_required(*roles):
    """
    Restringe a rota a usuários cujo papel global esteja em roles.
    Super-usuários sempre passam.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            ctx = resolve_context(current_user)
            if not ctx.is_super_user and ctx.global_role not in roles:
                return jsonify({'success': False, 'message': 'Você não tem permissão para acessar este recurso.'}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
