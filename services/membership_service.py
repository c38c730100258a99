# services/membership_service.py
"""
Associações de usuários a workspaces e projetos, convites e papel global.
"""
from collections import namedtuple
from email_validator import validate_email, EmailNotValidError
from flask import current_app
from extensions import db
from errors import NotFound, ValidationError, UpstreamError, Unauthorized
from models import User, Workspace, Project, WorkspaceMember, ProjectMember, ROLES, ROLE_EXECUTOR, ROLE_MANAGER
import permissions
from services.common import commit_primary, clean_text, parse_id_list
from utils.mail_utils import send_invite_email, verify_invite_token

InviteResult = namedtuple('InviteResult', ['user', 'created', 'workspace_ids', 'project_ids'])

SCOPES = {
    'workspace': (Workspace, WorkspaceMember, 'workspace_id'),
    'project': (Project, ProjectMember, 'project_id'),
}


def _validate_role(role, default=None):
    role = role or default
    if role not in ROLES:
        raise ValidationError(f"Papel inválido: {role}")
    return role


def _scope(kind):
    try:
        return SCOPES[kind]
    except KeyError:
        raise ValidationError(f"Escopo desconhecido: {kind}")


def _upsert_membership(membership_model, scope_column, scope_id, user_id, role):
    membership = membership_model.query.filter_by(**{scope_column: scope_id, 'user_id': user_id}).first()
    if membership is None:
        membership = membership_model(**{scope_column: scope_id, 'user_id': user_id, 'role': role})
        db.session.add(membership)
    else:
        membership.role = role
    return membership


# =========================================================================
# Membros
# =========================================================================
def list_members(kind, scope_id, actor):
    parent_model, membership_model, scope_column = _scope(kind)
    parent = permissions.load_or_deny(parent_model, scope_id, actor)
    memberships = (membership_model.query
                   .filter_by(**{scope_column: parent.id})
                   .order_by(membership_model.created_at.asc())
                   .all())
    visible = [m for m in memberships if permissions.can_read_membership(actor, m, parent)]
    if not visible and not permissions.can_manage_members(actor, parent):
        raise Unauthorized()
    return visible


def add_member(kind, scope_id, user_id, actor, role=None):
    parent_model, membership_model, scope_column = _scope(kind)
    parent = permissions.load_or_deny(parent_model, scope_id, actor, permissions.can_manage_members)
    role = _validate_role(role, ROLE_EXECUTOR)
    if db.session.get(User, user_id) is None:
        raise NotFound("Usuário não encontrado.")
    membership = _upsert_membership(membership_model, scope_column, parent.id, user_id, role)
    commit_primary(f"adicionar membro ao {kind}")
    current_app.logger.info(f"Usuário {user_id} associado ao {kind} {parent.id} como '{role}' por {actor.id}.")
    return membership


def change_member_role(kind, scope_id, user_id, actor, role):
    parent_model, membership_model, scope_column = _scope(kind)
    parent = permissions.load_or_deny(parent_model, scope_id, actor, permissions.can_manage_members)
    role = _validate_role(role)
    membership = membership_model.query.filter_by(**{scope_column: parent.id, 'user_id': user_id}).first()
    if membership is None:
        raise NotFound("Associação não encontrada.")
    membership.role = role
    commit_primary(f"alterar papel de membro do {kind}")
    return membership


def remove_member(kind, scope_id, user_id, actor):
    parent_model, membership_model, scope_column = _scope(kind)
    parent = permissions.load_or_deny(parent_model, scope_id, actor, permissions.can_manage_members)
    membership = membership_model.query.filter_by(**{scope_column: parent.id, 'user_id': user_id}).first()
    if membership is None:
        raise NotFound("Associação não encontrada.")
    db.session.delete(membership)
    commit_primary(f"remover membro do {kind}")
    current_app.logger.info(f"Usuário {user_id} removido do {kind} {parent.id} por {actor.id}.")


# =========================================================================
# Convites
# =========================================================================
def _resolve_invite_targets(model, ids, actor, is_super):
    targets = []
    for scope_id in ids:
        target = db.session.get(model, scope_id)
        if target is None:
            if is_super:
                raise NotFound(f"Escopo {scope_id} não encontrado.")
            raise Unauthorized()
        if not is_super:
            permissions.require(permissions.is_owner_manager(actor, target))
        targets.append(target)
    return targets


def invite(email, actor, role=None, workspace_ids=None, project_ids=None):
    """
    Convida um usuário por e-mail e o associa aos workspaces/projetos indicados.
    Reenviar o mesmo convite é idempotente: as associações são atualizadas, não duplicadas.
    """
    workspace_ids = parse_id_list(workspace_ids, 'workspace_ids')
    project_ids = parse_id_list(project_ids, 'project_ids')
    is_super = permissions.is_super_user(actor)

    if not is_super and not workspace_ids and not project_ids:
        raise Unauthorized()
    workspaces = _resolve_invite_targets(Workspace, workspace_ids, actor, is_super)
    projects = _resolve_invite_targets(Project, project_ids, actor, is_super)

    email = clean_text(email, 'email', required=True, max_length=255)
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"E-mail inválido: {e}")
    email = email.lower()
    role = _validate_role(role, ROLE_EXECUTOR)

    user = User.query.filter(db.func.lower(User.email) == email).first()
    created = user is None
    if created:
        user = User(email=email, role=role, password_set=False)
        db.session.add(user)
        db.session.flush()

    for workspace in workspaces:
        _upsert_membership(WorkspaceMember, 'workspace_id', workspace.id, user.id, role)
    for project in projects:
        _upsert_membership(ProjectMember, 'project_id', project.id, user.id, role)
    commit_primary('registrar convite')

    if created or not user.password_set:
        if not send_invite_email(user, inviter=actor):
            raise UpstreamError("Não foi possível enviar o e-mail de convite.")

    current_app.logger.info(f"Convite para {email} ({user.id}) registrado por {actor.id} com papel '{role}'.")
    return InviteResult(user, created, [w.id for w in workspaces], [p.id for p in projects])


def accept_invite(token):
    payload = verify_invite_token(token)
    if not payload:
        raise ValidationError("Convite inválido ou expirado.")
    user = db.session.get(User, payload.get('user_id'))
    if user is None or user.email != payload.get('email'):
        raise ValidationError("Convite inválido ou expirado.")
    # O link só vale até a senha ser definida.
    if user.password_set:
        current_app.logger.warning(f"Link de convite reutilizado pelo usuário {user.id}.")
        raise ValidationError("Convite inválido ou expirado.")
    return user


def complete_password_setup(user, password, confirm_password=None):
    if user.password_set:
        raise ValidationError("A senha já foi definida.")
    if not password or len(password) < 8:
        raise ValidationError("A senha deve ter pelo menos 8 caracteres.")
    if confirm_password is not None and password != confirm_password:
        raise ValidationError("As senhas não conferem.")
    user.set_password(password)
    user.password_set = True
    commit_primary('definir senha')
    current_app.logger.info(f"Senha definida para o usuário {user.id}.")
    return user


# =========================================================================
# Perfil global
# =========================================================================
def set_global_role(user_id, actor, role):
    ctx = permissions.resolve_context(actor)
    permissions.require(ctx.is_super_user or ctx.global_role == ROLE_MANAGER)
    target = db.session.get(User, user_id)
    if target is None:
        raise NotFound("Usuário não encontrado.")
    target.role = _validate_role(role)
    commit_primary('alterar papel global')
    current_app.logger.info(f"Papel global de {user_id} alterado para '{target.role}' por {actor.id}.")
    return target


def update_profile(user, data):
    for key in ('full_name', 'title', 'company', 'phone', 'avatar_url', 'theme'):
        if key in data:
            setattr(user, key, clean_text(data[key], key, max_length=500))
    commit_primary('atualizar perfil')
    return user


def describe_access(actor, workspace_id=None, project_id=None):
    """Papel efetivo do usuário atual no escopo pedido, para a interface decidir o que mostrar."""
    workspace = db.session.get(Workspace, workspace_id) if workspace_id else None
    project = db.session.get(Project, project_id) if project_id else None
    ctx = permissions.resolve_context(actor)
    return {
        'user_id': ctx.user_id,
        'global_role': ctx.global_role,
        'is_super_user': ctx.is_super_user,
        'effective_role': permissions.effective_role(actor, workspace=workspace, project=project),
    }
