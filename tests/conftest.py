# -*- coding: utf-8 -*-
"""
Fixtures compartilhadas da suíte de testes.

Cada teste recebe uma aplicação nova com banco SQLite em memória e
e-mails suprimidos pelo Flask-Mail.
"""

import os
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from extensions import db
from models import User, SuperUser, ROLE_MANAGER, ROLE_EXECUTOR, ROLE_VIEWER
from services import workspace_service, membership_service, task_service

TEST_PASSWORD = 'senha-de-teste-123'


# =============================================================================
# APLICAÇÃO E BANCO
# =============================================================================

@pytest.fixture(scope="function")
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'chave-de-teste',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'MAIL_SUPPRESS_SEND': True,
        'MAIL_DEFAULT_SENDER': 'testes@empresa.com.br',
        'VAPID_PUBLIC_KEY': None,
        'VAPID_PRIVATE_KEY': None,
        'VAPID_CLAIMS': None,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# USUÁRIOS
# =============================================================================

@pytest.fixture
def make_user(app):
    """Fábrica de usuários com senha já definida."""
    def _make(email, role=ROLE_VIEWER, super_user=False, password_set=True):
        user = User(email=email, role=role, password_set=password_set, full_name=email.split('@')[0])
        if password_set:
            user.set_password(TEST_PASSWORD)
        db.session.add(user)
        db.session.flush()
        if super_user:
            db.session.add(SuperUser(user_id=user.id))
        db.session.commit()
        return user
    return _make


@pytest.fixture
def manager(make_user):
    """Manager global que cria o workspace e o projeto dos testes."""
    return make_user('gerente@empresa.com.br', role=ROLE_MANAGER)


@pytest.fixture
def other_manager(make_user):
    return make_user('outro.gerente@empresa.com.br', role=ROLE_MANAGER)


@pytest.fixture
def executor(make_user):
    return make_user('executor@empresa.com.br', role=ROLE_EXECUTOR)


@pytest.fixture
def viewer(make_user):
    return make_user('leitor@empresa.com.br', role=ROLE_VIEWER)


@pytest.fixture
def outsider(make_user):
    return make_user('externo@empresa.com.br', role=ROLE_EXECUTOR)


@pytest.fixture
def super_user(make_user):
    return make_user('super@empresa.com.br', role=ROLE_VIEWER, super_user=True)


# =============================================================================
# WORKSPACE, PROJETO E TAREFA
# =============================================================================

@pytest.fixture
def workspace(manager):
    return workspace_service.create_workspace(manager, 'Workspace Principal', 'Workspace dos testes')


@pytest.fixture
def project(workspace, manager):
    return workspace_service.create_project(workspace.id, manager, 'Projeto Alfa', summary='Projeto dos testes')


@pytest.fixture
def members(workspace, manager, executor, viewer):
    """Executor e leitor associados ao workspace principal."""
    membership_service.add_member('workspace', workspace.id, executor.id, manager, role=ROLE_EXECUTOR)
    membership_service.add_member('workspace', workspace.id, viewer.id, manager, role=ROLE_VIEWER)
    return {'executor': executor, 'viewer': viewer}


@pytest.fixture
def task(project, manager):
    return task_service.add_task(project.id, manager, {
        'name': 'Preparar cronograma',
        'description': 'Montar o cronograma do projeto',
        'due_date_original': '2024-01-10',
        'estimated_minutes': 120,
    })


@pytest.fixture
def second_workspace(other_manager):
    return workspace_service.create_workspace(other_manager, 'Workspace Secundário')


@pytest.fixture
def second_project(second_workspace, other_manager):
    return workspace_service.create_project(second_workspace.id, other_manager, 'Projeto Beta')


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/login', json={'email': user.email, 'password': TEST_PASSWORD})
        assert response.status_code == 200, response.get_json()
        return response
    return _login
