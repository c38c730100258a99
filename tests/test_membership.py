# -*- coding: utf-8 -*-
"""
Testes de associações, convites e papel global.
"""

import pytest

from errors import Unauthorized, NotFound, ValidationError, UpstreamError, UNAUTHORIZED_MESSAGE
from extensions import db, mail
from models import User, WorkspaceMember, ProjectMember, ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER
from services import membership_service
from utils.mail_utils import generate_invite_token


class TestInvite:

    def test_invite_requires_scope_for_regular_users(self, manager):
        with pytest.raises(Unauthorized) as excinfo:
            membership_service.invite('novo@empresa.com.br', manager)
        assert excinfo.value.message == UNAUTHORIZED_MESSAGE

    def test_invite_creates_user_and_membership(self, workspace, manager):
        with mail.record_messages() as outbox:
            result = membership_service.invite('Novo@Empresa.com.br', manager, workspace_ids=[workspace.id])

        user = db.session.get(User, result.user.id)
        assert result.created is True
        assert user.email == 'novo@empresa.com.br'
        assert user.password_set is False
        assert user.global_role == ROLE_EXECUTOR
        membership = WorkspaceMember.query.filter_by(workspace_id=workspace.id, user_id=user.id).one()
        assert membership.role == ROLE_EXECUTOR
        assert len(outbox) == 1
        assert outbox[0].recipients == ['novo@empresa.com.br']
        assert '/invite/accept/' in outbox[0].body

    def test_invite_is_idempotent(self, workspace, project, manager):
        first = membership_service.invite('repetido@empresa.com.br', manager, role=ROLE_VIEWER,
                                          workspace_ids=[workspace.id, workspace.id], project_ids=[project.id])
        second = membership_service.invite('repetido@empresa.com.br', manager, role=ROLE_VIEWER,
                                           workspace_ids=[workspace.id], project_ids=[project.id])
        assert first.user.id == second.user.id
        assert second.created is False
        assert first.workspace_ids == [workspace.id]
        assert WorkspaceMember.query.filter_by(user_id=first.user.id).count() == 1
        assert ProjectMember.query.filter_by(user_id=first.user.id).count() == 1

    def test_reinvite_updates_membership_role(self, workspace, manager):
        result = membership_service.invite('papel@empresa.com.br', manager, role=ROLE_VIEWER, workspace_ids=[workspace.id])
        membership_service.invite('papel@empresa.com.br', manager, role=ROLE_MANAGER, workspace_ids=[workspace.id])
        membership = WorkspaceMember.query.filter_by(workspace_id=workspace.id, user_id=result.user.id).one()
        assert membership.role == ROLE_MANAGER

    def test_invite_denied_for_non_owner(self, workspace, members, executor):
        with pytest.raises(Unauthorized):
            membership_service.invite('x@empresa.com.br', executor, workspace_ids=[workspace.id])

    def test_invite_denied_for_unknown_scope(self, manager):
        with pytest.raises(Unauthorized):
            membership_service.invite('x@empresa.com.br', manager, workspace_ids=['nao-existe'])

    def test_invalid_role(self, workspace, manager):
        with pytest.raises(ValidationError):
            membership_service.invite('x@empresa.com.br', manager, role='admin', workspace_ids=[workspace.id])

    def test_missing_email(self, workspace, manager):
        with pytest.raises(ValidationError):
            membership_service.invite('', manager, workspace_ids=[workspace.id])

    @pytest.mark.parametrize('email', ['sem-arroba', 'a@', '@empresa.com.br', 'dois@@empresa.com.br'])
    def test_malformed_email(self, workspace, manager, email):
        with pytest.raises(ValidationError):
            membership_service.invite(email, manager, workspace_ids=[workspace.id])
        assert User.query.filter_by(email=email).first() is None

    def test_super_user_invites_without_scope(self, super_user):
        result = membership_service.invite('livre@empresa.com.br', super_user)
        assert result.workspace_ids == []
        assert result.user.password_set is False

    def test_mail_failure_is_upstream_error(self, workspace, manager, monkeypatch):
        monkeypatch.setattr(membership_service, 'send_invite_email', lambda user, inviter=None: False)
        with pytest.raises(UpstreamError):
            membership_service.invite('falha@empresa.com.br', manager, workspace_ids=[workspace.id])


class TestInviteAcceptance:

    def test_accept_and_set_password(self, workspace, manager):
        result = membership_service.invite('convidado@empresa.com.br', manager, workspace_ids=[workspace.id])
        token = generate_invite_token(result.user)

        user = membership_service.accept_invite(token)
        assert user.id == result.user.id

        membership_service.complete_password_setup(user, 'uma-senha-forte', 'uma-senha-forte')
        assert user.password_set is True
        assert user.check_password('uma-senha-forte')

    def test_tampered_token(self, app):
        with pytest.raises(ValidationError):
            membership_service.accept_invite('token-invalido')

    def test_short_password(self, make_user):
        user = make_user('novo.convidado@empresa.com.br', password_set=False)
        with pytest.raises(ValidationError):
            membership_service.complete_password_setup(user, 'curta')

    def test_password_confirmation_mismatch(self, make_user):
        user = make_user('novo.convidado@empresa.com.br', password_set=False)
        with pytest.raises(ValidationError):
            membership_service.complete_password_setup(user, 'senha-longa-1', 'senha-longa-2')

    def test_token_is_rejected_after_password_setup(self, workspace, manager):
        result = membership_service.invite('convidado@empresa.com.br', manager, workspace_ids=[workspace.id])
        token = generate_invite_token(result.user)
        user = membership_service.accept_invite(token)
        membership_service.complete_password_setup(user, 'uma-senha-forte', 'uma-senha-forte')

        with pytest.raises(ValidationError):
            membership_service.accept_invite(token)

    def test_password_setup_refused_once_set(self, viewer):
        with pytest.raises(ValidationError):
            membership_service.complete_password_setup(viewer, 'outra-senha-forte', 'outra-senha-forte')
        assert viewer.check_password('senha-de-teste-123')


class TestMembers:

    def test_add_change_remove(self, workspace, manager, executor):
        membership = membership_service.add_member('workspace', workspace.id, executor.id, manager)
        assert membership.role == ROLE_EXECUTOR
        changed = membership_service.change_member_role('workspace', workspace.id, executor.id, manager, ROLE_VIEWER)
        assert changed.role == ROLE_VIEWER
        membership_service.remove_member('workspace', workspace.id, executor.id, manager)
        assert WorkspaceMember.query.filter_by(workspace_id=workspace.id, user_id=executor.id).count() == 0

    def test_missing_membership_is_not_found_for_authorized_actor(self, workspace, manager, executor):
        with pytest.raises(NotFound):
            membership_service.remove_member('workspace', workspace.id, executor.id, manager)

    def test_non_owner_cannot_manage(self, workspace, members, executor, viewer):
        with pytest.raises(Unauthorized):
            membership_service.remove_member('workspace', workspace.id, viewer.id, executor)

    def test_project_members_managed_by_project_owner(self, project, manager, other_manager, executor):
        membership_service.add_member('project', project.id, executor.id, manager, role=ROLE_VIEWER)
        with pytest.raises(Unauthorized):
            membership_service.add_member('project', project.id, executor.id, other_manager, role=ROLE_MANAGER)

    def test_unknown_user(self, workspace, manager):
        with pytest.raises(NotFound):
            membership_service.add_member('workspace', workspace.id, 'usuario-inexistente', manager)


class TestGlobalRole:

    def test_executor_cannot_change_roles(self, executor, viewer):
        with pytest.raises(Unauthorized):
            membership_service.set_global_role(viewer.id, executor, ROLE_MANAGER)

    def test_super_user_changes_role(self, super_user, viewer):
        user = membership_service.set_global_role(viewer.id, super_user, ROLE_MANAGER)
        assert user.global_role == ROLE_MANAGER

    def test_describe_access(self, workspace, members, executor):
        access = membership_service.describe_access(executor, workspace_id=workspace.id)
        assert access['effective_role'] == ROLE_EXECUTOR
        assert access['is_super_user'] is False
