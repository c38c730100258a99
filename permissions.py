# permissions.py
"""
Resolução de papéis e regras de acesso por entidade.

Os resolvedores consultam diretamente as tabelas de associação; nenhum deles
chama os predicados de acesso, para que a avaliação de uma regra nunca dependa
de outra regra sobre a mesma tabela.

Todos os predicados recebem o usuário (ou None para anônimo) e a entidade já
carregada. Quem chama decide o que fazer com uma entidade ausente; veja
require() e load_or_deny().
"""
from collections import namedtuple

from extensions import db
from errors import Unauthorized, NotFound
from models import (User, SuperUser, Workspace, Project, WorkspaceMember, ProjectMember,
                    Task, TaskTimeEntry, TaskDueDateChange, TaskAuditLog, TaskComment,
                    ProjectExtraWorkEntry, Sector, TaskType, FeedPost, Notification,
                    WorkspacePresence, ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER)

# Papéis de associação autorizados a publicar no feed.
FEED_POSTING_ROLES = (ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER)

ROLE_RANK = {ROLE_VIEWER: 0, ROLE_EXECUTOR: 1, ROLE_MANAGER: 2}

RoleContext = namedtuple('RoleContext', ['user_id', 'global_role', 'is_super_user'])


# =========================================================================
# Resolvedores
# =========================================================================
def resolve_context(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        return RoleContext(None, ROLE_VIEWER, False)
    is_super = db.session.get(SuperUser, user.id) is not None
    return RoleContext(user.id, user.global_role, is_super)


def is_super_user(user):
    return resolve_context(user).is_super_user


def resolve_workspace_role(user_id, workspace_id):
    if not user_id or not workspace_id:
        return None
    membership = WorkspaceMember.query.filter_by(workspace_id=workspace_id, user_id=user_id).first()
    return membership.role if membership else None


def resolve_project_role(user_id, project_id):
    if not user_id or not project_id:
        return None
    membership = ProjectMember.query.filter_by(project_id=project_id, user_id=user_id).first()
    return membership.role if membership else None


def _most_permissive(roles):
    roles = [r for r in roles if r in ROLE_RANK]
    if not roles:
        return None
    return max(roles, key=lambda r: ROLE_RANK[r])


def effective_role(user, workspace=None, project=None):
    """
    Papel efetivo do usuário em um escopo: o mais permissivo entre super-usuário,
    papel global de manager com posse do recurso, papel no workspace e papel no projeto.
    Retorna None quando o usuário não tem vínculo algum com o escopo.
    """
    ctx = resolve_context(user)
    if ctx.is_super_user:
        return ROLE_MANAGER
    if ctx.user_id is None:
        return None

    if project is not None and workspace is None:
        workspace = project.workspace

    candidates = []
    for resource in (workspace, project):
        if resource is not None and is_owner_manager(user, resource):
            candidates.append(ROLE_MANAGER)
    if workspace is not None:
        candidates.append(resolve_workspace_role(ctx.user_id, workspace.id))
    if project is not None:
        candidates.append(resolve_project_role(ctx.user_id, project.id))
    return _most_permissive(candidates)


# =========================================================================
# Predicados reutilizáveis
# =========================================================================
def is_owner_manager(user, resource):
    """Criador do recurso que também possui o papel global de manager."""
    ctx = resolve_context(user)
    if ctx.user_id is None or resource is None:
        return False
    return resource.created_by == ctx.user_id and ctx.global_role == ROLE_MANAGER


def is_workspace_member(user, workspace_id):
    ctx = resolve_context(user)
    return resolve_workspace_role(ctx.user_id, workspace_id) is not None


def is_workspace_manager(user, workspace_id):
    ctx = resolve_context(user)
    return resolve_workspace_role(ctx.user_id, workspace_id) == ROLE_MANAGER


def is_project_member(user, project_id):
    ctx = resolve_context(user)
    return resolve_project_role(ctx.user_id, project_id) is not None


# --- Workspace ---
def can_read_workspace(user, workspace):
    return is_super_user(user) or is_workspace_member(user, workspace.id)


def can_create_workspace(user, created_by):
    ctx = resolve_context(user)
    if ctx.user_id is None or created_by != ctx.user_id:
        return False
    return ctx.is_super_user or ctx.global_role == ROLE_MANAGER


def can_write_workspace(user, workspace):
    return is_super_user(user) or is_owner_manager(user, workspace)


# --- Projeto ---
def can_read_project(user, project):
    if is_super_user(user):
        return True
    return is_workspace_manager(user, project.workspace_id) or is_project_member(user, project.id)


def can_create_project(user, workspace, created_by):
    ctx = resolve_context(user)
    if ctx.user_id is None or created_by != ctx.user_id:
        return False
    if ctx.is_super_user:
        return True
    return ctx.global_role == ROLE_MANAGER and can_read_workspace(user, workspace)


def can_write_project(user, project):
    return is_super_user(user) or is_owner_manager(user, project)


# --- Tarefas e sub-registros ---
def can_access_project_content(user, project):
    """Membro do projeto, membro do workspace do projeto, criador do projeto ou super-usuário."""
    ctx = resolve_context(user)
    if ctx.user_id is None:
        return False
    if ctx.is_super_user or project.created_by == ctx.user_id:
        return True
    return is_project_member(user, project.id) or is_workspace_member(user, project.workspace_id)


def can_access_task(user, task):
    return can_access_project_content(user, task.project)


def can_modify_comment(user, comment):
    ctx = resolve_context(user)
    return ctx.is_super_user or (ctx.user_id is not None and comment.created_by == ctx.user_id)


# --- Setores e tipos de tarefa ---
def can_read_vocabulary(user, workspace_id):
    return is_super_user(user) or is_workspace_member(user, workspace_id)


def can_write_vocabulary(user, workspace_id):
    return is_super_user(user) or is_workspace_manager(user, workspace_id)


# --- Associações ---
def can_read_membership(user, membership, parent):
    ctx = resolve_context(user)
    if ctx.user_id is None:
        return False
    return ctx.is_super_user or membership.user_id == ctx.user_id or is_owner_manager(user, parent)


def can_manage_members(user, parent):
    """parent é o Workspace ou o Project dono das associações."""
    return is_super_user(user) or is_owner_manager(user, parent)


# --- Feed ---
def can_read_feed(user, workspace):
    ctx = resolve_context(user)
    if ctx.user_id is None:
        return False
    return ctx.is_super_user or workspace.created_by == ctx.user_id or is_workspace_member(user, workspace.id)


def can_create_feed_post(user, workspace):
    ctx = resolve_context(user)
    if ctx.is_super_user:
        return True
    return resolve_workspace_role(ctx.user_id, workspace.id) in FEED_POSTING_ROLES


def can_modify_feed_post(user, post):
    ctx = resolve_context(user)
    return ctx.is_super_user or (ctx.user_id is not None and post.created_by == ctx.user_id)


# --- Notificações ---
def can_access_notification(user, notification):
    ctx = resolve_context(user)
    return ctx.is_super_user or (ctx.user_id is not None and notification.mentioned_user_id == ctx.user_id)


# --- Presença ---
def can_read_presence(user, workspace):
    return can_read_feed(user, workspace)


def can_write_presence(user, workspace, user_id):
    ctx = resolve_context(user)
    if ctx.is_super_user:
        return True
    if ctx.user_id is None or user_id != ctx.user_id:
        return False
    return workspace.created_by == ctx.user_id or is_workspace_member(user, workspace.id)


# =========================================================================
# Despacho genérico por tipo de entidade
# =========================================================================
def can_read(user, entity):
    if isinstance(entity, Workspace):
        return can_read_workspace(user, entity)
    if isinstance(entity, Project):
        return can_read_project(user, entity)
    if isinstance(entity, Task):
        return can_access_task(user, entity)
    if isinstance(entity, (TaskTimeEntry, TaskDueDateChange, TaskAuditLog, TaskComment)):
        return can_access_task(user, entity.task)
    if isinstance(entity, ProjectExtraWorkEntry):
        return can_access_project_content(user, entity.project)
    if isinstance(entity, (Sector, TaskType)):
        return can_read_vocabulary(user, entity.workspace_id)
    if isinstance(entity, WorkspaceMember):
        return can_read_membership(user, entity, entity.workspace)
    if isinstance(entity, ProjectMember):
        return can_read_membership(user, entity, entity.project)
    if isinstance(entity, FeedPost):
        return can_read_feed(user, entity.workspace)
    if isinstance(entity, Notification):
        return can_access_notification(user, entity)
    if isinstance(entity, WorkspacePresence):
        return can_read_presence(user, entity.workspace)
    if isinstance(entity, User):
        ctx = resolve_context(user)
        return ctx.is_super_user or ctx.user_id == entity.id
    raise TypeError(f"Tipo de entidade sem regra de leitura: {type(entity).__name__}")


def can_write(user, entity):
    if isinstance(entity, Workspace):
        return can_write_workspace(user, entity)
    if isinstance(entity, Project):
        return can_write_project(user, entity)
    if isinstance(entity, Task):
        return can_access_task(user, entity)
    if isinstance(entity, TaskComment):
        return can_modify_comment(user, entity)
    if isinstance(entity, (TaskTimeEntry, TaskDueDateChange, TaskAuditLog)):
        return can_access_task(user, entity.task)
    if isinstance(entity, ProjectExtraWorkEntry):
        return can_access_project_content(user, entity.project)
    if isinstance(entity, (Sector, TaskType)):
        return can_write_vocabulary(user, entity.workspace_id)
    if isinstance(entity, WorkspaceMember):
        return can_manage_members(user, entity.workspace)
    if isinstance(entity, ProjectMember):
        return can_manage_members(user, entity.project)
    if isinstance(entity, FeedPost):
        return can_modify_feed_post(user, entity)
    if isinstance(entity, Notification):
        return can_access_notification(user, entity)
    if isinstance(entity, WorkspacePresence):
        return can_write_presence(user, entity.workspace, entity.user_id)
    if isinstance(entity, User):
        ctx = resolve_context(user)
        return ctx.is_super_user or ctx.user_id == entity.id
    raise TypeError(f"Tipo de entidade sem regra de escrita: {type(entity).__name__}")


# =========================================================================
# Aplicação das regras
# =========================================================================
def require(allowed):
    if not allowed:
        raise Unauthorized()


def load_or_deny(model, entity_id, user, predicate=None):
    """
    Carrega a entidade e aplica o predicado.

    Para quem não é super-usuário, um registro inexistente é reportado como
    Unauthorized, igual a uma negação. O super-usuário já está autorizado, então
    recebe NotFound.
    """
    entity = db.session.get(model, entity_id) if entity_id else None
    if entity is None:
        if is_super_user(user):
            raise NotFound()
        raise Unauthorized()
    if predicate is not None:
        require(predicate(user, entity))
    return entity
