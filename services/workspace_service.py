# services/workspace_service.py
"""
Workspaces, projetos, vocabulários do workspace (setores e tipos de tarefa),
presença e horas extras de projeto.
"""
from datetime import datetime, date
from flask import current_app
from extensions import db
from errors import ValidationError
from models import (Workspace, Project, WorkspaceMember, Sector, TaskType, WorkspacePresence,
                    ProjectExtraWorkEntry, ROLE_MANAGER, PROJECT_DEFAULT_STATUS, DEFAULT_TAG_COLOR)
import permissions
from services.common import commit_primary, clean_text, parse_date, parse_int


# =========================================================================
# Workspaces
# =========================================================================
def create_workspace(actor, name, description=None):
    permissions.require(permissions.can_create_workspace(actor, actor.id if actor else None))
    workspace = Workspace(
        name=clean_text(name, 'name', required=True, max_length=150),
        description=clean_text(description, 'description'),
        created_by=actor.id
    )
    db.session.add(workspace)
    db.session.flush()
    # O criador entra automaticamente como manager do workspace.
    db.session.add(WorkspaceMember(workspace_id=workspace.id, user_id=actor.id, role=ROLE_MANAGER))
    commit_primary('criar workspace')
    current_app.logger.info(f"Workspace '{workspace.name}' ({workspace.id}) criado por {actor.id}.")
    return workspace


def get_workspace(workspace_id, actor):
    return permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_read_workspace)


def list_workspaces(actor):
    if permissions.is_super_user(actor):
        return Workspace.query.order_by(Workspace.created_at.asc()).all()
    return (Workspace.query
            .join(WorkspaceMember, WorkspaceMember.workspace_id == Workspace.id)
            .filter(WorkspaceMember.user_id == actor.id)
            .order_by(Workspace.created_at.asc())
            .all())


def update_workspace(workspace_id, actor, data):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_write_workspace)
    if 'name' in data:
        workspace.name = clean_text(data['name'], 'name', required=True, max_length=150)
    if 'description' in data:
        workspace.description = clean_text(data['description'], 'description')
    commit_primary('atualizar workspace')
    return workspace


def delete_workspace(workspace_id, actor):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_write_workspace)
    db.session.delete(workspace)
    commit_primary('excluir workspace')
    current_app.logger.info(f"Workspace {workspace_id} excluído por {actor.id}.")


# =========================================================================
# Projetos
# =========================================================================
def create_project(workspace_id, actor, name, summary=None, status=None):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor)
    permissions.require(permissions.can_create_project(actor, workspace, actor.id))
    project = Project(
        workspace_id=workspace.id,
        name=clean_text(name, 'name', required=True, max_length=150),
        summary=clean_text(summary, 'summary'),
        status=clean_text(status, 'status', max_length=50) or PROJECT_DEFAULT_STATUS,
        created_by=actor.id
    )
    db.session.add(project)
    commit_primary('criar projeto')
    current_app.logger.info(f"Projeto '{project.name}' ({project.id}) criado no workspace {workspace.id}.")
    return project


def get_project(project_id, actor):
    return permissions.load_or_deny(Project, project_id, actor, permissions.can_read_project)


def list_projects(workspace_id, actor):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor)
    projects = Project.query.filter_by(workspace_id=workspace.id).order_by(Project.created_at.asc()).all()
    return [p for p in projects if permissions.can_read_project(actor, p)]


def update_project(project_id, actor, data):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_write_project)
    if 'name' in data:
        project.name = clean_text(data['name'], 'name', required=True, max_length=150)
    if 'summary' in data:
        project.summary = clean_text(data['summary'], 'summary')
    if 'status' in data:
        project.status = clean_text(data['status'], 'status', required=True, max_length=50)
    commit_primary('atualizar projeto')
    return project


def delete_project(project_id, actor):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_write_project)
    db.session.delete(project)
    commit_primary('excluir projeto')
    current_app.logger.info(f"Projeto {project_id} excluído por {actor.id}.")


# =========================================================================
# Setores e tipos de tarefa
# =========================================================================
VOCABULARY_MODELS = {
    'sector': Sector,
    'task_type': TaskType,
}


def _vocabulary_model(kind):
    try:
        return VOCABULARY_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Vocabulário desconhecido: {kind}")


def _vocabulary_gate(actor, workspace_id, predicate):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor)
    permissions.require(predicate(actor, workspace.id))
    return workspace


def list_vocabulary(kind, workspace_id, actor):
    model = _vocabulary_model(kind)
    _vocabulary_gate(actor, workspace_id, permissions.can_read_vocabulary)
    return model.query.filter_by(workspace_id=workspace_id).order_by(model.name.asc()).all()


def create_vocabulary_item(kind, workspace_id, actor, name, color=None):
    model = _vocabulary_model(kind)
    _vocabulary_gate(actor, workspace_id, permissions.can_write_vocabulary)
    item = model(
        workspace_id=workspace_id,
        name=clean_text(name, 'name', required=True, max_length=100),
        color=clean_text(color, 'color', max_length=20) or DEFAULT_TAG_COLOR,
        created_by=actor.id
    )
    db.session.add(item)
    commit_primary(f"criar {kind}")
    return item


def update_vocabulary_item(kind, item_id, actor, data):
    model = _vocabulary_model(kind)
    item = permissions.load_or_deny(model, item_id, actor, permissions.can_write)
    if 'name' in data:
        item.name = clean_text(data['name'], 'name', required=True, max_length=100)
    if 'color' in data:
        item.color = clean_text(data['color'], 'color', max_length=20) or DEFAULT_TAG_COLOR
    commit_primary(f"atualizar {kind}")
    return item


def delete_vocabulary_item(kind, item_id, actor):
    model = _vocabulary_model(kind)
    item = permissions.load_or_deny(model, item_id, actor, permissions.can_write)
    db.session.delete(item)
    commit_primary(f"excluir {kind}")


# =========================================================================
# Presença
# =========================================================================
def touch_presence(workspace_id, actor):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor)
    permissions.require(permissions.can_write_presence(actor, workspace, actor.id))
    presence = db.session.get(WorkspacePresence, (workspace.id, actor.id))
    if presence is None:
        presence = WorkspacePresence(workspace_id=workspace.id, user_id=actor.id)
        db.session.add(presence)
    presence.last_seen = datetime.utcnow()
    commit_primary('registrar presença')
    return presence


def list_presence(workspace_id, actor, since=None):
    workspace = permissions.load_or_deny(Workspace, workspace_id, actor, permissions.can_read_presence)
    query = WorkspacePresence.query.filter_by(workspace_id=workspace.id)
    if since is not None:
        query = query.filter(WorkspacePresence.last_seen >= since)
    return query.order_by(WorkspacePresence.last_seen.desc()).all()


# =========================================================================
# Horas extras de projeto
# =========================================================================
def add_extra_work_entry(project_id, actor, description, duration_minutes, worked_at=None, note=None):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_access_project_content)
    entry = ProjectExtraWorkEntry(
        project_id=project.id,
        description=clean_text(description, 'description', required=True),
        duration_minutes=parse_int(duration_minutes, 'duration_minutes', minimum=0, required=True),
        worked_at=parse_date(worked_at, 'worked_at') or date.today(),
        note=clean_text(note, 'note'),
        created_by=actor.id
    )
    db.session.add(entry)
    commit_primary('registrar hora extra')
    return entry


def list_extra_work_entries(project_id, actor):
    project = permissions.load_or_deny(Project, project_id, actor, permissions.can_access_project_content)
    return (ProjectExtraWorkEntry.query
            .filter_by(project_id=project.id)
            .order_by(ProjectExtraWorkEntry.worked_at.desc(), ProjectExtraWorkEntry.created_at.desc())
            .all())


def delete_extra_work_entry(entry_id, actor):
    entry = permissions.load_or_deny(ProjectExtraWorkEntry, entry_id, actor, permissions.can_write)
    db.session.delete(entry)
    commit_primary('excluir hora extra')

