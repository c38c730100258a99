# -*- coding: utf-8 -*-
"""
Testes das regras de acesso e da resolução de papéis.
"""

import pytest

import permissions
from errors import Unauthorized, NotFound, ConflictError
from extensions import db
from models import User, WorkspaceMember, Workspace, ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER
from services import workspace_service, task_service, membership_service


# =============================================================================
# RESOLVEDORES
# =============================================================================

class TestRoleResolution:

    def test_unset_global_role_resolves_to_viewer(self, make_user):
        user = make_user('sem.papel@empresa.com.br', role=None)
        ctx = permissions.resolve_context(user)
        assert ctx.global_role == ROLE_VIEWER
        assert ctx.is_super_user is False

    def test_anonymous_context(self):
        ctx = permissions.resolve_context(None)
        assert ctx.user_id is None
        assert ctx.global_role == ROLE_VIEWER

    def test_super_user_context(self, super_user):
        assert permissions.resolve_context(super_user).is_super_user is True

    def test_effective_role_is_most_permissive(self, workspace, project, manager, viewer):
        membership_service.add_member('workspace', workspace.id, viewer.id, manager, role=ROLE_VIEWER)
        membership_service.add_member('project', project.id, viewer.id, manager, role=ROLE_EXECUTOR)
        assert permissions.effective_role(viewer, workspace=workspace) == ROLE_VIEWER
        assert permissions.effective_role(viewer, project=project) == ROLE_EXECUTOR

    def test_effective_role_for_owner_manager_and_super(self, workspace, manager, super_user, outsider):
        assert permissions.effective_role(manager, workspace=workspace) == ROLE_MANAGER
        assert permissions.effective_role(super_user, workspace=workspace) == ROLE_MANAGER
        assert permissions.effective_role(outsider, workspace=workspace) is None


# =============================================================================
# WORKSPACES
# =============================================================================

class TestWorkspaceAccess:

    def test_creator_becomes_manager_member(self, workspace, manager):
        membership = WorkspaceMember.query.filter_by(workspace_id=workspace.id, user_id=manager.id).one()
        assert membership.role == ROLE_MANAGER

    def test_viewer_cannot_create_workspace(self, viewer):
        with pytest.raises(Unauthorized):
            workspace_service.create_workspace(viewer, 'Não deveria existir')

    def test_super_user_can_create_workspace(self, super_user):
        workspace = workspace_service.create_workspace(super_user, 'Workspace do super')
        assert workspace.created_by == super_user.id

    def test_non_member_cannot_read(self, workspace, outsider):
        with pytest.raises(Unauthorized):
            workspace_service.get_workspace(workspace.id, outsider)

    def test_member_reads_but_cannot_delete(self, workspace, members, executor):
        assert workspace_service.get_workspace(workspace.id, executor).id == workspace.id
        with pytest.raises(Unauthorized):
            workspace_service.delete_workspace(workspace.id, executor)

    def test_manager_who_is_not_creator_cannot_delete(self, workspace, manager, other_manager):
        membership_service.add_member('workspace', workspace.id, other_manager.id, manager, role=ROLE_MANAGER)
        with pytest.raises(Unauthorized):
            workspace_service.delete_workspace(workspace.id, other_manager)

    def test_creator_who_lost_manager_role_cannot_delete(self, workspace, manager):
        manager.role = ROLE_EXECUTOR
        db.session.commit()
        with pytest.raises(Unauthorized):
            workspace_service.delete_workspace(workspace.id, manager)

    def test_super_user_deletes_workspace_without_membership(self, workspace, project, task, super_user):
        workspace_service.delete_workspace(workspace.id, super_user)
        assert db.session.get(Workspace, workspace.id) is None

    def test_list_workspaces_only_returns_memberships(self, workspace, second_workspace, members, executor, super_user):
        assert [w.id for w in workspace_service.list_workspaces(executor)] == [workspace.id]
        assert len(workspace_service.list_workspaces(super_user)) == 2


# =============================================================================
# PROJETOS E TAREFAS
# =============================================================================

class TestProjectAccess:

    def test_workspace_executor_cannot_read_project_metadata(self, project, members, executor):
        assert permissions.can_read_project(executor, project) is False
        with pytest.raises(Unauthorized):
            workspace_service.get_project(project.id, executor)

    def test_workspace_member_can_work_on_tasks(self, project, task, members, executor):
        # Membros do workspace acessam as tarefas mesmo sem ler os dados do projeto.
        result = task_service.apply_task_update(task.id, {'status': 'Pendente'}, executor)
        assert result.task.status == 'Pendente'

    def test_project_member_reads_project(self, project, manager, outsider):
        membership_service.add_member('project', project.id, outsider.id, manager, role=ROLE_VIEWER)
        assert workspace_service.get_project(project.id, outsider).id == project.id

    def test_user_from_other_workspace_is_denied(self, workspace, second_project, members, executor, other_manager):
        foreign_task = task_service.add_task(second_project.id, other_manager, {'name': 'Tarefa de outro workspace'})
        with pytest.raises(Unauthorized):
            workspace_service.get_project(second_project.id, executor)
        with pytest.raises(Unauthorized):
            task_service.apply_task_update(foreign_task.id, {'name': 'Invadido'}, executor)
        with pytest.raises(Unauthorized):
            task_service.add_task(second_project.id, executor, {'name': 'Nova'})

    def test_project_executor_updates_status(self, project, task, manager, executor):
        membership_service.add_member('project', project.id, executor.id, manager, role=ROLE_EXECUTOR)
        result = task_service.apply_task_update(task.id, {'status': 'Em Execução'}, executor)
        entry = result.audit_entries[0]
        assert (entry.field, entry.old_value, entry.new_value, entry.changed_by) == (
            'Status da Tarefa', 'Backlog', 'Em Execução', executor.id)

    def test_workspace_viewer_cannot_delete_project(self, project, task, members, viewer, manager):
        with pytest.raises(Unauthorized):
            workspace_service.delete_project(project.id, viewer)
        assert [t.id for t in task_service.list_tasks(project.id, manager)] == [task.id]

    def test_create_project_requires_manager_role(self, workspace, members, executor):
        with pytest.raises(Unauthorized):
            workspace_service.create_project(workspace.id, executor, 'Projeto do executor')

    def test_manager_outside_workspace_cannot_create_project(self, workspace, other_manager):
        with pytest.raises(Unauthorized):
            workspace_service.create_project(workspace.id, other_manager, 'Projeto intruso')

    def test_missing_entity_is_unauthorized_for_regular_users(self, manager):
        with pytest.raises(Unauthorized):
            task_service.get_task('00000000-0000-0000-0000-000000000000', manager)

    def test_missing_entity_is_not_found_for_super_user(self, super_user):
        with pytest.raises(NotFound):
            task_service.get_task('00000000-0000-0000-0000-000000000000', super_user)

    def test_delete_project_only_by_owner_manager(self, project, workspace, manager, other_manager):
        membership_service.add_member('project', project.id, other_manager.id, manager, role=ROLE_MANAGER)
        with pytest.raises(Unauthorized):
            workspace_service.delete_project(project.id, other_manager)
        workspace_service.delete_project(project.id, manager)
        assert workspace_service.list_projects(workspace.id, manager) == []


# =============================================================================
# VOCABULÁRIOS
# =============================================================================

class TestVocabularyAccess:

    def test_members_read_managers_write(self, workspace, members, manager, executor):
        workspace_service.create_vocabulary_item('sector', workspace.id, manager, 'Financeiro', '#ff0000')
        assert [s.name for s in workspace_service.list_vocabulary('sector', workspace.id, executor)] == ['Financeiro']
        with pytest.raises(Unauthorized):
            workspace_service.create_vocabulary_item('sector', workspace.id, executor, 'Jurídico')

    def test_duplicate_name_conflicts(self, workspace, manager):
        workspace_service.create_vocabulary_item('task_type', workspace.id, manager, 'Revisão')
        with pytest.raises(ConflictError):
            workspace_service.create_vocabulary_item('task_type', workspace.id, manager, 'Revisão')

    def test_same_name_allowed_in_other_workspace(self, workspace, second_workspace, manager, other_manager):
        workspace_service.create_vocabulary_item('sector', workspace.id, manager, 'Compras')
        item = workspace_service.create_vocabulary_item('sector', second_workspace.id, other_manager, 'Compras')
        assert item.workspace_id == second_workspace.id

    def test_outsider_cannot_read(self, workspace, outsider):
        with pytest.raises(Unauthorized):
            workspace_service.list_vocabulary('sector', workspace.id, outsider)


# =============================================================================
# ASSOCIAÇÕES, PRESENÇA E DESPACHO GENÉRICO
# =============================================================================

class TestMembershipVisibility:

    def test_member_sees_only_own_row(self, workspace, members, executor):
        rows = membership_service.list_members('workspace', workspace.id, executor)
        assert [r.user_id for r in rows] == [executor.id]

    def test_owner_manager_sees_all_rows(self, workspace, members, manager):
        rows = membership_service.list_members('workspace', workspace.id, manager)
        assert len(rows) == 3

    def test_outsider_cannot_list(self, workspace, outsider):
        with pytest.raises(Unauthorized):
            membership_service.list_members('workspace', workspace.id, outsider)


class TestPresence:

    def test_member_touches_own_presence(self, workspace, members, executor, viewer):
        workspace_service.touch_presence(workspace.id, executor)
        rows = workspace_service.list_presence(workspace.id, viewer)
        assert [r.user_id for r in rows] == [executor.id]

    def test_outsider_cannot_touch_presence(self, workspace, outsider):
        with pytest.raises(Unauthorized):
            workspace_service.touch_presence(workspace.id, outsider)


class TestGenericDispatch:

    def test_can_read_and_can_write(self, workspace, project, task, members, manager, executor, outsider):
        assert permissions.can_read(executor, workspace) is True
        assert permissions.can_write(executor, workspace) is False
        assert permissions.can_write(manager, workspace) is True
        assert permissions.can_read(executor, task) is True
        assert permissions.can_read(outsider, task) is False

    def test_unknown_entity_type(self, manager):
        with pytest.raises(TypeError):
            permissions.can_read(manager, object())

    def test_user_entity_visible_to_self(self, manager, executor):
        assert permissions.can_read(manager, manager) is True
        assert permissions.can_read(executor, db.session.get(User, manager.id)) is False
