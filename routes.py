# routes.py

from datetime import date, datetime, timedelta
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_user, current_user, logout_user, login_required

from extensions import db
from decorators import password_setup_required, role_required
from errors import ValidationError
from forms import (LoginForm, PasswordSetupForm, InviteForm, WorkspaceForm, ProjectForm, MemberForm,
                   RoleForm, VocabularyForm, TaskForm, TimeEntryForm, DueDateChangeForm, CommentForm,
                   ExtraWorkForm, FeedPostForm, DailySummaryForm)
from models import User, PushSubscription, ROLE_MANAGER
from services import (workspace_service, task_service, membership_service, feed_service,
                      activity_service)
from services.common import parse_date, parse_datetime

main = Blueprint('main', __name__)


def _payload():
    return request.get_json(silent=True) or {}


def _actor():
    return current_user._get_current_object()


def _form_error(form):
    return jsonify({'success': False, 'message': 'Dados inválidos.', 'errors': form.errors}), 400


def _ok(message=None, status=200, warnings=None, **data):
    body = {'success': True}
    if message:
        body['message'] = message
    if warnings:
        body['warnings'] = warnings
    body.update(data)
    return jsonify(body), status


# =========================================================================================
# AUTENTICAÇÃO, CONVITE E SENHA
# =========================================================================================

@main.route('/login', methods=['POST'])
def login():
    form = LoginForm()
    if not form.validate():
        return _form_error(form)
    user = User.query.filter(db.func.lower(User.email) == form.email.data.strip().lower()).first()
    if user is None or not user.is_active or not user.check_password(form.password.data):
        current_app.logger.warning(f"Tentativa de login sem sucesso para {form.email.data}.")
        return jsonify({'success': False, 'message': 'Login sem sucesso. Verifique email e senha.'}), 401
    login_user(user, remember=form.remember.data)
    return _ok('Login realizado com sucesso!', user=user.to_dict())


@main.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return _ok('Você saiu da sua conta.')


@main.route('/me', methods=['GET'])
@login_required
def me():
    return _ok(user=_actor().to_dict())


@main.route('/me', methods=['PATCH'])
@login_required
@password_setup_required
def update_me():
    user = membership_service.update_profile(_actor(), _payload())
    return _ok('Perfil atualizado.', user=user.to_dict())


@main.route('/invite/accept/<token>', methods=['GET', 'POST'])
def accept_invite(token):
    user = membership_service.accept_invite(token)
    login_user(user)
    return _ok('Convite aceito.', user=user.to_dict(), password_setup_required=not user.password_set)


@main.route('/password/setup', methods=['POST'])
@login_required
def password_setup():
    form = PasswordSetupForm()
    if not form.validate():
        return _form_error(form)
    user = membership_service.complete_password_setup(_actor(), form.password.data, form.confirm_password.data)
    return _ok('Senha definida com sucesso!', user=user.to_dict())


@main.route('/api/access', methods=['GET'])
@login_required
@password_setup_required
def access_context():
    access = membership_service.describe_access(
        _actor(),
        workspace_id=request.args.get('workspace_id'),
        project_id=request.args.get('project_id')
    )
    return _ok(access=access)


# =========================================================================================
# USUÁRIOS E CONVITES
# =========================================================================================

@main.route('/api/users', methods=['GET'])
@login_required
@password_setup_required
@role_required(ROLE_MANAGER)
def list_users():
    query = request.args.get('q', '').strip()
    users = User.query
    if query:
        users = users.filter(db.or_(User.email.ilike(f'%{query}%'), User.full_name.ilike(f'%{query}%')))
    return _ok(users=[u.to_dict() for u in users.order_by(User.email.asc()).limit(50).all()])


@main.route('/api/users/<user_id>/role', methods=['PATCH'])
@login_required
@password_setup_required
def set_user_role(user_id):
    form = RoleForm()
    if not form.validate():
        return _form_error(form)
    user = membership_service.set_global_role(user_id, _actor(), form.role.data)
    return _ok('Papel atualizado.', user=user.to_dict())


@main.route('/api/invites', methods=['POST'])
@login_required
@password_setup_required
def invite_user():
    form = InviteForm()
    if not form.validate():
        return _form_error(form)
    data = _payload()
    result = membership_service.invite(
        form.email.data,
        _actor(),
        role=form.role.data or None,
        workspace_ids=data.get('workspace_ids'),
        project_ids=data.get('project_ids')
    )
    return _ok('Convite enviado.', 201 if result.created else 200,
               user_id=result.user.id,
               workspace_ids=result.workspace_ids,
               project_ids=result.project_ids)


# =========================================================================================
# WORKSPACES
# =========================================================================================

@main.route('/api/workspaces', methods=['GET'])
@login_required
@password_setup_required
def list_workspaces():
    return _ok(workspaces=[w.to_dict() for w in workspace_service.list_workspaces(_actor())])


@main.route('/api/workspaces', methods=['POST'])
@login_required
@password_setup_required
def create_workspace():
    form = WorkspaceForm()
    if not form.validate():
        return _form_error(form)
    workspace = workspace_service.create_workspace(_actor(), form.name.data, form.description.data)
    return _ok('Workspace criado com sucesso!', 201, workspace=workspace.to_dict())


@main.route('/api/workspaces/<workspace_id>', methods=['GET'])
@login_required
@password_setup_required
def get_workspace(workspace_id):
    workspace = workspace_service.get_workspace(workspace_id, _actor())
    return _ok(workspace=workspace.to_dict())


@main.route('/api/workspaces/<workspace_id>', methods=['PATCH'])
@login_required
@password_setup_required
def update_workspace(workspace_id):
    workspace = workspace_service.update_workspace(workspace_id, _actor(), _payload())
    return _ok('Workspace atualizado.', workspace=workspace.to_dict())


@main.route('/api/workspaces/<workspace_id>', methods=['DELETE'])
@login_required
@password_setup_required
def delete_workspace(workspace_id):
    workspace_service.delete_workspace(workspace_id, _actor())
    return _ok('Workspace excluído.')


# --- Membros (workspace e projeto) ---

def _list_members(kind, scope_id):
    members = membership_service.list_members(kind, scope_id, _actor())
    return _ok(members=[m.to_dict() for m in members])


def _add_member(kind, scope_id):
    form = MemberForm()
    if not form.validate():
        return _form_error(form)
    membership = membership_service.add_member(kind, scope_id, form.user_id.data, _actor(), role=form.role.data or None)
    return _ok('Membro adicionado.', 201, member=membership.to_dict())


def _change_member(kind, scope_id, user_id):
    form = RoleForm()
    if not form.validate():
        return _form_error(form)
    membership = membership_service.change_member_role(kind, scope_id, user_id, _actor(), form.role.data)
    return _ok('Papel do membro atualizado.', member=membership.to_dict())


def _remove_member(kind, scope_id, user_id):
    membership_service.remove_member(kind, scope_id, user_id, _actor())
    return _ok('Membro removido.')


@main.route('/api/workspaces/<workspace_id>/members', methods=['GET', 'POST'])
@login_required
@password_setup_required
def workspace_members(workspace_id):
    if request.method == 'GET':
        return _list_members('workspace', workspace_id)
    return _add_member('workspace', workspace_id)


@main.route('/api/workspaces/<workspace_id>/members/<user_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def workspace_member(workspace_id, user_id):
    if request.method == 'PATCH':
        return _change_member('workspace', workspace_id, user_id)
    return _remove_member('workspace', workspace_id, user_id)


@main.route('/api/projects/<project_id>/members', methods=['GET', 'POST'])
@login_required
@password_setup_required
def project_members(project_id):
    if request.method == 'GET':
        return _list_members('project', project_id)
    return _add_member('project', project_id)


@main.route('/api/projects/<project_id>/members/<user_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def project_member(project_id, user_id):
    if request.method == 'PATCH':
        return _change_member('project', project_id, user_id)
    return _remove_member('project', project_id, user_id)


# --- Setores e tipos de tarefa ---

def _vocabulary_collection(kind, workspace_id):
    if request.method == 'GET':
        items = workspace_service.list_vocabulary(kind, workspace_id, _actor())
        return _ok(items=[i.to_dict() for i in items])
    form = VocabularyForm()
    if not form.validate():
        return _form_error(form)
    item = workspace_service.create_vocabulary_item(kind, workspace_id, _actor(), form.name.data, form.color.data)
    return _ok('Item criado.', 201, item=item.to_dict())


def _vocabulary_item(kind, item_id):
    if request.method == 'DELETE':
        workspace_service.delete_vocabulary_item(kind, item_id, _actor())
        return _ok('Item excluído.')
    item = workspace_service.update_vocabulary_item(kind, item_id, _actor(), _payload())
    return _ok('Item atualizado.', item=item.to_dict())


@main.route('/api/workspaces/<workspace_id>/sectors', methods=['GET', 'POST'])
@login_required
@password_setup_required
def sectors(workspace_id):
    return _vocabulary_collection('sector', workspace_id)


@main.route('/api/sectors/<item_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def sector(item_id):
    return _vocabulary_item('sector', item_id)


@main.route('/api/workspaces/<workspace_id>/task-types', methods=['GET', 'POST'])
@login_required
@password_setup_required
def task_types(workspace_id):
    return _vocabulary_collection('task_type', workspace_id)


@main.route('/api/task-types/<item_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def task_type(item_id):
    return _vocabulary_item('task_type', item_id)


# --- Presença ---

@main.route('/api/workspaces/<workspace_id>/presence', methods=['GET', 'POST'])
@login_required
@password_setup_required
def presence(workspace_id):
    if request.method == 'POST':
        entry = workspace_service.touch_presence(workspace_id, _actor())
        return _ok(presence=entry.to_dict())
    window = current_app.config.get('PRESENCE_WINDOW_SECONDS', 300)
    since = datetime.utcnow() - timedelta(seconds=window)
    entries = workspace_service.list_presence(workspace_id, _actor(), since=since)
    return _ok(presence=[e.to_dict() for e in entries])


# =========================================================================================
# PROJETOS
# =========================================================================================

@main.route('/api/workspaces/<workspace_id>/projects', methods=['GET'])
@login_required
@password_setup_required
def list_projects(workspace_id):
    projects = workspace_service.list_projects(workspace_id, _actor())
    return _ok(projects=[p.to_dict() for p in projects])


@main.route('/api/workspaces/<workspace_id>/projects', methods=['POST'])
@login_required
@password_setup_required
def create_project(workspace_id):
    form = ProjectForm()
    if not form.validate():
        return _form_error(form)
    project = workspace_service.create_project(workspace_id, _actor(), form.name.data,
                                               summary=form.summary.data, status=form.status.data)
    return _ok('Projeto criado com sucesso!', 201, project=project.to_dict())


@main.route('/api/projects/<project_id>', methods=['GET'])
@login_required
@password_setup_required
def get_project(project_id):
    project = workspace_service.get_project(project_id, _actor())
    return _ok(project=project.to_dict())


@main.route('/api/projects/<project_id>', methods=['PATCH'])
@login_required
@password_setup_required
def update_project(project_id):
    project = workspace_service.update_project(project_id, _actor(), _payload())
    return _ok('Projeto atualizado.', project=project.to_dict())


@main.route('/api/projects/<project_id>', methods=['DELETE'])
@login_required
@password_setup_required
def delete_project(project_id):
    workspace_service.delete_project(project_id, _actor())
    return _ok('Projeto excluído.')


@main.route('/api/projects/<project_id>/extra-work', methods=['GET', 'POST'])
@login_required
@password_setup_required
def extra_work(project_id):
    if request.method == 'GET':
        entries = workspace_service.list_extra_work_entries(project_id, _actor())
        return _ok(entries=[e.to_dict() for e in entries])
    form = ExtraWorkForm()
    if not form.validate():
        return _form_error(form)
    data = _payload()
    entry = workspace_service.add_extra_work_entry(project_id, _actor(), form.description.data,
                                                   data.get('duration_minutes'), worked_at=form.worked_at.data,
                                                   note=form.note.data)
    return _ok('Hora extra registrada.', 201, entry=entry.to_dict())


@main.route('/api/extra-work/<entry_id>', methods=['DELETE'])
@login_required
@password_setup_required
def delete_extra_work(entry_id):
    workspace_service.delete_extra_work_entry(entry_id, _actor())
    return _ok('Hora extra excluída.')


# =========================================================================================
# TAREFAS
# =========================================================================================

@main.route('/api/projects/<project_id>/tasks', methods=['GET'])
@login_required
@password_setup_required
def list_tasks(project_id):
    tasks = task_service.list_tasks(project_id, _actor(), status=request.args.get('status'))
    return _ok(tasks=[t.to_dict() for t in tasks])


@main.route('/api/projects/<project_id>/tasks', methods=['POST'])
@login_required
@password_setup_required
def create_task(project_id):
    form = TaskForm()
    if not form.validate():
        return _form_error(form)
    task = task_service.add_task(project_id, _actor(), _payload())
    return _ok('Tarefa criada com sucesso!', 201, task=task.to_dict())


@main.route('/api/tasks/<task_id>', methods=['GET'])
@login_required
@password_setup_required
def get_task(task_id):
    task = task_service.get_task(task_id, _actor())
    return _ok(task=task.to_dict())


@main.route('/api/tasks/<task_id>', methods=['PATCH'])
@login_required
@password_setup_required
def update_task(task_id):
    form = TaskForm()
    if not form.validate():
        return _form_error(form)
    result = task_service.apply_task_update(task_id, _payload(), _actor())
    return _ok('Tarefa atualizada com sucesso!', warnings=result.warnings,
               task=result.task.to_dict(),
               audit_entries=[e.to_dict() for e in result.audit_entries])


@main.route('/api/tasks/<task_id>', methods=['DELETE'])
@login_required
@password_setup_required
def delete_task(task_id):
    task_service.delete_task(task_id, _actor())
    return _ok('Tarefa excluída com sucesso!')


@main.route('/api/tasks/<task_id>/time-entries', methods=['POST'])
@login_required
@password_setup_required
def record_time_entry(task_id):
    form = TimeEntryForm()
    if not form.validate():
        return _form_error(form)
    data = _payload()
    result = task_service.record_time_entry(
        task_id, _actor(),
        duration_minutes=data.get('duration_minutes'),
        started_at=form.started_at.data,
        ended_at=form.ended_at.data,
        source=form.source.data or 'manual',
        note=form.note.data
    )
    return _ok('Tempo registrado.', 201, warnings=result.warnings,
               entry=result.entry.to_dict(), task=result.task.to_dict())


@main.route('/api/tasks/<task_id>/due-date-changes', methods=['POST'])
@login_required
@password_setup_required
def record_due_date_change(task_id):
    form = DueDateChangeForm()
    if not form.validate():
        return _form_error(form)
    result = task_service.record_due_date_change(task_id, _actor(), form.new_date.data, form.reason.data)
    return _ok('Prazo alterado.', 201, warnings=result.warnings,
               change=result.change.to_dict(), task=result.task.to_dict())


@main.route('/api/tasks/<task_id>/history', methods=['GET'])
@login_required
@password_setup_required
def task_history(task_id):
    history = task_service.get_task_history(task_id, _actor())
    return _ok(**{key: [row.to_dict() for row in rows] for key, rows in history.items()})


@main.route('/api/tasks/<task_id>/comments', methods=['GET', 'POST'])
@login_required
@password_setup_required
def task_comments(task_id):
    if request.method == 'GET':
        comments = task_service.list_comments(task_id, _actor())
        return _ok(comments=[c.to_dict() for c in comments])
    form = CommentForm()
    if not form.validate():
        return _form_error(form)
    comment = task_service.add_comment(task_id, _actor(), form.content.data)
    return _ok('Comentário adicionado com sucesso!', 201, comment=comment.to_dict())


@main.route('/api/comments/<comment_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def task_comment(comment_id):
    if request.method == 'DELETE':
        task_service.delete_comment(comment_id, _actor())
        return _ok('Comentário excluído.')
    form = CommentForm()
    if not form.validate():
        return _form_error(form)
    comment = task_service.update_comment(comment_id, _actor(), form.content.data)
    return _ok('Comentário atualizado.', comment=comment.to_dict())


# =========================================================================================
# FEED E NOTIFICAÇÕES
# =========================================================================================

@main.route('/api/workspaces/<workspace_id>/feed', methods=['GET'])
@login_required
@password_setup_required
def list_feed(workspace_id):
    before = parse_datetime(request.args.get('before'), 'before')
    posts = feed_service.list_feed_posts(workspace_id, _actor(), before=before)
    return _ok(posts=[p.to_dict() for p in posts])


@main.route('/api/workspaces/<workspace_id>/feed', methods=['POST'])
@login_required
@password_setup_required
def create_feed_post(workspace_id):
    form = FeedPostForm()
    if not form.validate():
        return _form_error(form)
    data = _payload()
    result = feed_service.create_feed_post(workspace_id, _actor(), form.content.data,
                                           task_ids=data.get('task_ids'),
                                           mentioned_user_ids=data.get('mentioned_user_ids'))
    return _ok('Publicação criada.', 201, warnings=result.warnings,
               post=result.post.to_dict(), notified_user_ids=[n.mentioned_user_id for n in result.notifications])


@main.route('/api/feed/<post_id>', methods=['PATCH', 'DELETE'])
@login_required
@password_setup_required
def feed_post(post_id):
    if request.method == 'DELETE':
        feed_service.delete_feed_post(post_id, _actor())
        return _ok('Publicação excluída.')
    post = feed_service.update_feed_post(post_id, _actor(), _payload())
    return _ok('Publicação atualizada.', post=post.to_dict())


@main.route('/api/notifications', methods=['GET'])
@login_required
@password_setup_required
def list_notifications():
    unread_only = request.args.get('unread', '').lower() in ('1', 'true')
    notifications = feed_service.list_notifications(_actor(), unread_only=unread_only,
                                                    workspace_id=request.args.get('workspace_id'))
    return _ok(notifications=[n.to_dict() for n in notifications])


@main.route('/api/notifications/unread_count', methods=['GET'])
@login_required
@password_setup_required
def unread_notifications_count():
    return _ok(unread_count=feed_service.unread_count(_actor(), workspace_id=request.args.get('workspace_id')))


@main.route('/api/notifications/<notification_id>/read', methods=['POST'])
@login_required
@password_setup_required
def mark_notification_read(notification_id):
    notification = feed_service.mark_read(notification_id, _actor())
    return _ok('Notificação marcada como lida.', notification=notification.to_dict())


@main.route('/api/notifications/read-all', methods=['POST'])
@login_required
@password_setup_required
def mark_all_notifications_read():
    updated = feed_service.mark_all_read(_actor(), workspace_id=_payload().get('workspace_id'))
    return _ok('Notificações marcadas como lidas.', updated=updated)


@main.route('/api/vapid-public-key', methods=['GET'])
def vapid_public_key():
    return jsonify({'publicKey': current_app.config.get('VAPID_PUBLIC_KEY')})


@main.route('/api/save-subscription', methods=['POST'])
@login_required
@password_setup_required
def save_subscription():
    data = _payload()
    subscription = data.get('subscription') or {}
    keys = subscription.get('keys') or {}
    if not subscription.get('endpoint') or not keys.get('p256dh') or not keys.get('auth'):
        return jsonify({'success': False, 'message': 'Dados de assinatura inválidos'}), 400

    existing = PushSubscription.query.filter_by(endpoint=subscription['endpoint']).first()
    if existing:
        existing.user_id = current_user.id
        existing.p256dh = keys['p256dh']
        existing.auth = keys['auth']
    else:
        db.session.add(PushSubscription(
            user_id=current_user.id,
            endpoint=subscription['endpoint'],
            p256dh=keys['p256dh'],
            auth=keys['auth']
        ))
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Erro ao salvar assinatura de push para o usuário {current_user.id}: {e}", exc_info=True)
        return jsonify({'success': False, 'message': 'Erro ao salvar assinatura.'}), 500
    return _ok('Assinatura salva com sucesso!', 200 if existing else 201)


# =========================================================================================
# ATIVIDADE E RESUMO DIÁRIO
# =========================================================================================

@main.route('/api/workspaces/<workspace_id>/activity', methods=['GET'])
@login_required
@password_setup_required
def workspace_activity(workspace_id):
    start = parse_datetime(request.args.get('start'), 'start')
    end = parse_datetime(request.args.get('end'), 'end')
    if start is None or end is None:
        raise ValidationError("Informe 'start' e 'end'.")
    events = activity_service.list_workspace_activity(workspace_id, _actor(), start, end,
                                                      project_id=request.args.get('project_id'))
    return _ok(events=events)


@main.route('/api/workspaces/<workspace_id>/daily-summary', methods=['POST'])
@login_required
@password_setup_required
def daily_summary(workspace_id):
    form = DailySummaryForm()
    if not form.validate():
        return _form_error(form)
    day = parse_date(form.day.data, 'day') or date.today()
    summary = activity_service.send_daily_summary(workspace_id, _actor(), day, form.recipient_email.data,
                                                  project_id=_payload().get('project_id'))
    return _ok('Resumo diário enviado.', summary=summary)
